from datetime import date
from typing import FrozenSet
import logging
import uuid

from ..database.connection import DatabaseManager
from ..exceptions import InvalidRecurrence, NotFound
from ..models.event import CalendarEvent, EventException, SKIP
from .locks import EventLockRegistry

logger = logging.getLogger(__name__)


class ExceptionStore:
    """Per-date skip exceptions of recurring events"""

    def __init__(self, database_manager: DatabaseManager, locks: EventLockRegistry):
        self.database_manager = database_manager
        self.locks = locks

    def add_skip_exception(self, event_id: str, exception_date: date) -> EventException:
        """Suppress one occurrence of a recurring event.

        Idempotent: an existing exception for the same date is returned as is.
        """
        with self.locks.hold(event_id):
            with self.database_manager.session_scope() as session:
                event = session.get(CalendarEvent, event_id)
                if event is None:
                    raise NotFound(f"Event {event_id} not found", details={'event_id': event_id})
                if not event.is_recurring:
                    raise InvalidRecurrence(
                        f"Event {event_id} is not recurring; delete it instead",
                        details={'event_id': event_id}
                    )

                existing = session.query(EventException).filter_by(
                    event_id=event_id, exception_date=exception_date
                ).first()
                if existing:
                    logger.info(f"Exception for event {event_id} on {exception_date} already exists")
                    return existing

                if not event.occurs_on(exception_date):
                    logger.warning(f"Event {event_id} does not occur on {exception_date}; storing exception anyway")

                exception = EventException(
                    id=str(uuid.uuid4()),
                    event_id=event_id,
                    exception_date=exception_date,
                    kind=SKIP
                )
                session.add(exception)

        logger.info(f"Added skip exception for event {event_id} on {exception_date}")
        return exception

    def remove_exception(self, event_id: str, exception_date: date):
        """Restore a skipped occurrence; no-op when there is nothing to remove"""
        with self.locks.hold(event_id):
            with self.database_manager.session_scope() as session:
                deleted = session.query(EventException).filter_by(
                    event_id=event_id, exception_date=exception_date
                ).delete()
        if deleted:
            logger.info(f"Removed exception for event {event_id} on {exception_date}")

    def list_exceptions(self, event_id: str) -> FrozenSet[date]:
        with self.database_manager.session_scope() as session:
            rows = session.query(EventException.exception_date).filter_by(event_id=event_id).all()
            return frozenset(row[0] for row in rows)
