from enum import Enum
from typing import List, Optional
from pydantic import BaseModel


class SyncState(str, Enum):
    """Mirror status stored on every event"""
    UNSYNCED = "unsynced"
    SYNCED = "synced"
    SYNC_FAILED = "sync_failed"


class SyncStatus(BaseModel):
    """Model for tracking sync status and results"""
    new_events: int = 0
    updated_events: int = 0
    failed_events: int = 0
    errors: List[str] = []


class SyncOutcome(BaseModel):
    """Result of mirroring a single event"""
    event_id: str
    mirror_id: Optional[str] = None
    status: SyncState
