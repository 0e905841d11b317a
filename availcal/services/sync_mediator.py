from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from datetime import datetime
from typing import Any, Callable, Dict
from zoneinfo import ZoneInfo
import logging

from ..database.connection import DatabaseManager
from ..exceptions import NotFound, RemoteCalendarError, RemoteNotFound, SyncFailed
from ..models.event import CalendarEvent
from ..models.sync_status import SyncOutcome, SyncState, SyncStatus
from .locks import EventLockRegistry

logger = logging.getLogger(__name__)


class SyncMediator:
    """
    Keeps the remote calendar mirror in line with local events.

    Local state is the source of truth. Remote calls run outside the event
    lock with a bounded timeout; failures only mark the event `sync_failed`.
    Skip exceptions are never mirrored: the remote side only reflects whether
    an event (series) exists and what its definition is.
    """

    def __init__(self, database_manager: DatabaseManager, remote_client, locks: EventLockRegistry,
                 payload_builder: Callable[[CalendarEvent], Dict[str, Any]], timeout: float = 10.0,
                 max_workers: int = 4):
        self.database_manager = database_manager
        self.remote_client = remote_client
        self.locks = locks
        self.payload_builder = payload_builder
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='availcal-sync')

    def sync_event(self, event_id: str) -> SyncOutcome:
        """Create or update the remote mirror of an event.

        Raises SyncFailed after recording `sync_failed` on the event.
        """
        with self.database_manager.session_scope() as session:
            snapshot = session.get(CalendarEvent, event_id)
            if snapshot is None:
                raise NotFound(f"Event {event_id} not found", details={'event_id': event_id})
        payload = self.payload_builder(snapshot)

        mirror_id = snapshot.google_id
        try:
            if mirror_id is None:
                mirror_id = self._call(self.remote_client.create_remote_event, payload)
                logger.info(f"Created remote mirror {mirror_id} for event {event_id}")
            else:
                try:
                    self._call(self.remote_client.update_remote_event, mirror_id, payload)
                    logger.info(f"Updated remote mirror {mirror_id} for event {event_id}")
                except RemoteNotFound:
                    logger.warning(f"Remote mirror {mirror_id} of event {event_id} is gone, recreating it")
                    mirror_id = self._call(self.remote_client.create_remote_event, payload)
        except RemoteCalendarError as e:
            self._record_failure(event_id, e)
            raise SyncFailed(f"Could not sync event {event_id}: {e}", event_id=event_id,
                             details={'transient': e.transient})

        return self._record_success(snapshot, mirror_id)

    def delete_mirror(self, event: CalendarEvent):
        """Delete the remote mirror of an event, if it has one.

        A mirror that is already gone counts as deleted.
        """
        if not event.google_id:
            return
        try:
            self._call(self.remote_client.delete_remote_event, event.google_id)
            logger.info(f"Deleted remote mirror {event.google_id} of event {event.id}")
        except RemoteNotFound:
            logger.warning(f"Remote mirror {event.google_id} of event {event.id} was already gone")
        except RemoteCalendarError as e:
            raise SyncFailed(f"Could not delete remote mirror {event.google_id}: {e}", event_id=event.id,
                             details={'transient': e.transient})

    def sync_pending(self, event_store) -> SyncStatus:
        """Retry every event that is not `synced`"""
        status = SyncStatus()
        for event in event_store.list_unsynced():
            is_new = event.google_id is None
            try:
                self.sync_event(event.id)
            except NotFound:
                continue
            except SyncFailed as e:
                status.failed_events += 1
                status.errors.append(str(e))
                continue
            if is_new:
                status.new_events += 1
            else:
                status.updated_events += 1
        logger.info(f"Sync pass finished: {status.model_dump()}")
        return status

    def shutdown(self):
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _call(self, fn, *args):
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeout:
            future.cancel()
            raise RemoteCalendarError(f"Remote call timed out after {self.timeout}s", transient=True)

    def _record_success(self, snapshot: CalendarEvent, mirror_id: str) -> SyncOutcome:
        with self.locks.hold(snapshot.id):
            with self.database_manager.session_scope() as session:
                event = session.get(CalendarEvent, snapshot.id)
                gone = event is None
                orphan = mirror_id if gone and mirror_id != snapshot.google_id else None
                if not gone:
                    event.google_id = mirror_id
                    event.last_synced = datetime.now(ZoneInfo('UTC'))
                    event.sync_error = None
                    # an edit that landed while we were talking to the remote still needs pushing
                    if event.revision == snapshot.revision:
                        event.sync_status = SyncState.SYNCED.value
                    else:
                        event.sync_status = SyncState.UNSYNCED.value
                    state = SyncState(event.sync_status)

        if gone:
            if orphan is not None:
                # deleted locally while the create was in flight
                logger.warning(f"Event {snapshot.id} was deleted during sync, removing remote {orphan}")
                try:
                    self._call(self.remote_client.delete_remote_event, orphan)
                except RemoteCalendarError as e:
                    logger.error(f"Could not remove orphaned remote event {orphan}: {e}")
            raise NotFound(f"Event {snapshot.id} not found", details={'event_id': snapshot.id})

        return SyncOutcome(event_id=snapshot.id, mirror_id=mirror_id, status=state)

    def _record_failure(self, event_id: str, error: RemoteCalendarError):
        logger.error(f"Sync of event {event_id} failed: {error}")
        with self.locks.hold(event_id):
            with self.database_manager.session_scope() as session:
                event = session.get(CalendarEvent, event_id)
                if event is not None:
                    event.sync_status = SyncState.SYNC_FAILED.value
                    event.sync_error = str(error)
