from datetime import date
from typing import List, Optional
import logging

from ..config.manager import ConfigManager
from ..database.connection import DatabaseManager
from ..exceptions import InvalidEventDefinition, NotFound, SyncFailed
from ..integrations.google_calendar import GoogleCalendarClient, to_google_event
from ..models.event_response import Occurrence
from ..models.sync_status import SyncStatus
from .deletion_coordinator import DeletionCoordinator
from .event_store import EventStore
from .exception_store import ExceptionStore
from .locks import EventLockRegistry
from .occurrence_expander import expand
from .sync_mediator import SyncMediator

logger = logging.getLogger(__name__)

# Longest range expanded by one list_occurrences call
MAX_RANGE_DAYS = 366 * 2


class CalendarService:
    """Entry point used by the API and the CLI"""

    def __init__(self, event_store: EventStore, exception_store: ExceptionStore,
                 coordinator: DeletionCoordinator, sync_mediator: Optional[SyncMediator] = None):
        self.event_store = event_store
        self.exception_store = exception_store
        self.coordinator = coordinator
        self.sync_mediator = sync_mediator

    @property
    def sync_enabled(self) -> bool:
        return self.sync_mediator is not None

    def list_occurrences(self, owner_id: str, range_start: date, range_end: date) -> List[Occurrence]:
        """Every occurrence of an owner's events in the range, ordered by date then title"""
        if range_end < range_start:
            raise InvalidEventDefinition(f"Range end {range_end} is before range start {range_start}")
        if (range_end - range_start).days > MAX_RANGE_DAYS:
            raise InvalidEventDefinition(f"Range is longer than {MAX_RANGE_DAYS} days")

        occurrences = []
        for event in self.event_store.list_events(owner_id, range_start, range_end):
            for day in expand(event, range_start, range_end):
                occurrences.append(Occurrence(
                    event_id=event.id,
                    title=event.title,
                    event_type=event.event_type,
                    date=day,
                    start_time=event.start_time,
                    end_time=event.end_time
                ))
        occurrences.sort(key=lambda o: (o.date, o.start_time is not None, o.start_time, o.title))
        return occurrences

    def request_delete(self, event_id: str, delete_option=None, specific_date=None):
        return self.coordinator.request_delete(event_id, delete_option, specific_date)

    def sync_event_quietly(self, event_id: str):
        """Follow-up mirror sync whose failure is recorded on the event, never raised"""
        if self.sync_mediator is None:
            return
        try:
            self.sync_mediator.sync_event(event_id)
        except (SyncFailed, NotFound) as e:
            logger.error(f"Background sync of event {event_id} failed: {e}")

    def sync_pending(self) -> SyncStatus:
        if self.sync_mediator is None:
            return SyncStatus(errors=["Remote calendar sync is disabled"])
        return self.sync_mediator.sync_pending(self.event_store)

    def close(self):
        if self.sync_mediator is not None:
            self.sync_mediator.shutdown()


def build_calendar_service(config_manager: ConfigManager, database_manager: Optional[DatabaseManager] = None,
                           remote_client=None) -> CalendarService:
    """Wire stores, mediator and coordinator from configuration"""
    if database_manager is None:
        config_manager.ensure_directories()
        database_manager = DatabaseManager(database_url=config_manager.get('app.database_url'))

    if remote_client is None and config_manager.get('sync.enabled'):
        remote_client = GoogleCalendarClient(config=config_manager.get('google', {}))

    locks = EventLockRegistry()
    sync_mediator = None
    if remote_client is not None:
        sync_mediator = SyncMediator(
            database_manager,
            remote_client,
            locks,
            payload_builder=to_google_event,
            timeout=config_manager.get('sync.timeout_seconds', 10.0)
        )
    else:
        logger.info("Remote calendar sync is disabled")

    event_store = EventStore(
        database_manager,
        locks,
        sync_mediator=sync_mediator,
        default_timezone=config_manager.get('app.timezone', 'America/New_York')
    )
    exception_store = ExceptionStore(database_manager, locks)
    coordinator = DeletionCoordinator(event_store, exception_store)
    return CalendarService(event_store, exception_store, coordinator, sync_mediator)
