from datetime import date, time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class DeleteOption(str, Enum):
    THIS_DAY = "this_day"
    ALL_OCCURRENCES = "all_occurrences"


class EventCreate(BaseModel):
    """Definition of a new availability/unavailability event"""
    title: str
    description: Optional[str] = None
    event_type: Literal["availability", "unavailability"] = "availability"
    owner_id: str
    start_date: date
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    timezone: Optional[str] = None
    location: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[Union[str, Dict[str, Any]]] = None


class EventUpdate(BaseModel):
    """Partial edit of an existing event"""
    title: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[Literal["availability", "unavailability"]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    timezone: Optional[str] = None
    location: Optional[str] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[Union[str, Dict[str, Any]]] = None


class ExceptionCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exception_date: date = Field(alias="exceptionDate")


class DeletionOutcome(BaseModel):
    """What a delete request actually did"""
    event_id: str
    action: Literal["exception_created", "event_deleted"]
    message: str
    exception_date: Optional[date] = None
    mirror_status: Optional[str] = None


class Occurrence(BaseModel):
    event_id: str
    title: str
    event_type: str
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class EventResponse(BaseModel):
    success: bool
    message: str = ""
    events: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary"""
        return self.model_dump(mode="json")
