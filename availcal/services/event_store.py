from datetime import date
from typing import Any, Dict, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload
from pydantic import ValidationError
import json
import logging
import uuid

from ..database.connection import DatabaseManager
from ..exceptions import InvalidEventDefinition, NotFound, SyncFailed
from ..models.event import CalendarEvent, EVENT_TYPES
from ..models.event_response import EventCreate, EventUpdate
from ..models.recurrence import parse_recurrence, pattern_end_date
from ..models.sync_status import SyncState
from .locks import EventLockRegistry

logger = logging.getLogger(__name__)


class EventStore:
    """Owns event definitions, their lifecycle and cascading deletes"""

    def __init__(self, database_manager: DatabaseManager, locks: EventLockRegistry,
                 sync_mediator=None, default_timezone: str = 'America/New_York'):
        self.database_manager = database_manager
        self.locks = locks
        self.sync_mediator = sync_mediator
        self.default_timezone = default_timezone

    def create_event(self, definition: Union[EventCreate, Dict[str, Any]]) -> CalendarEvent:
        """Validate and persist a new event with sync status `unsynced`"""
        if isinstance(definition, dict):
            try:
                definition = EventCreate(**definition)
            except ValidationError as e:
                raise InvalidEventDefinition(f"Invalid event definition: {e}")

        event = CalendarEvent(
            id=str(uuid.uuid4()),
            title=definition.title,
            description=definition.description,
            event_type=definition.event_type,
            owner_id=definition.owner_id,
            start_date=definition.start_date,
            end_date=definition.end_date,
            start_time=definition.start_time,
            end_time=definition.end_time,
            timezone=definition.timezone or self.default_timezone,
            location=definition.location,
            is_recurring=definition.is_recurring,
            recurrence_pattern=_dump_pattern(definition.recurrence_pattern),
            sync_status=SyncState.UNSYNCED.value,
            revision=1,
            exceptions=[]
        )
        self._validate(event)

        with self.database_manager.session_scope() as session:
            session.add(event)

        logger.info(f"Created {event.event_type} event {event.id} '{event.title}' for owner {event.owner_id}")
        return event

    def get_event(self, event_id: str) -> CalendarEvent:
        with self.database_manager.session_scope() as session:
            event = session.execute(
                select(CalendarEvent)
                .options(selectinload(CalendarEvent.exceptions))
                .where(CalendarEvent.id == event_id)
            ).scalar_one_or_none()
            if event is None:
                raise NotFound(f"Event {event_id} not found", details={'event_id': event_id})
            return event

    def update_event(self, event_id: str, changes: Union[EventUpdate, Dict[str, Any]]) -> CalendarEvent:
        """Apply a partial edit; the event goes back to `unsynced`"""
        if isinstance(changes, dict):
            try:
                changes = EventUpdate(**changes)
            except ValidationError as e:
                raise InvalidEventDefinition(f"Invalid event changes: {e}")
        changes = changes.model_dump(exclude_unset=True)

        with self.locks.hold(event_id):
            with self.database_manager.session_scope() as session:
                event = session.execute(
                    select(CalendarEvent)
                    .options(selectinload(CalendarEvent.exceptions))
                    .where(CalendarEvent.id == event_id)
                ).scalar_one_or_none()
                if event is None:
                    raise NotFound(f"Event {event_id} not found", details={'event_id': event_id})

                for key, value in changes.items():
                    if key == 'recurrence_pattern':
                        value = _dump_pattern(value)
                    setattr(event, key, value)
                self._validate(event)
                event.revision = (event.revision or 1) + 1
                event.sync_status = SyncState.UNSYNCED.value

        logger.info(f"Updated event {event_id}: {sorted(changes)}")
        return event

    def delete_event(self, event_id: str) -> CalendarEvent:
        """Delete an event together with all of its exceptions.

        The local delete is committed under the event lock. The remote mirror
        is removed afterwards, outside the lock; its outcome is reported on the
        returned (detached) snapshot as `sync_status` and never undoes the
        local delete.
        """
        with self.locks.hold(event_id):
            with self.database_manager.session_scope() as session:
                event = session.execute(
                    select(CalendarEvent)
                    .options(selectinload(CalendarEvent.exceptions))
                    .where(CalendarEvent.id == event_id)
                ).scalar_one_or_none()
                if event is None:
                    raise NotFound(f"Event {event_id} not found", details={'event_id': event_id})

                exception_count = len(event.exceptions)
                session.delete(event)
        self.locks.forget(event_id)
        logger.info(f"Deleted event {event_id} and {exception_count} exception(s)")

        if event.google_id and self.sync_mediator is None:
            logger.warning(f"Remote sync is disabled; mirror {event.google_id} of deleted event {event_id} was left in place")
            event.sync_status = SyncState.SYNC_FAILED.value
            event.sync_error = "Remote calendar sync is disabled"
        elif event.google_id:
            try:
                self.sync_mediator.delete_mirror(event)
                event.sync_status = SyncState.SYNCED.value
            except SyncFailed as e:
                logger.error(f"Remote mirror {event.google_id} of deleted event {event_id} was not removed: {e}")
                event.sync_status = SyncState.SYNC_FAILED.value
                event.sync_error = str(e)
        return event

    def list_events(self, owner_id: str, range_start: date, range_end: date) -> List[CalendarEvent]:
        """Events of an owner whose date window intersects the range"""
        if range_end < range_start:
            raise InvalidEventDefinition(f"Range end {range_end} is before range start {range_start}")
        with self.database_manager.session_scope() as session:
            query = (
                select(CalendarEvent)
                .options(selectinload(CalendarEvent.exceptions))
                .where(
                    (CalendarEvent.owner_id == owner_id) &
                    (CalendarEvent.start_date <= range_end) &
                    or_(
                        CalendarEvent.end_date.is_(None),
                        CalendarEvent.end_date >= range_start,
                        CalendarEvent.is_recurring == False  # noqa: E712
                    )
                )
                .order_by(CalendarEvent.start_date)
            )
            return list(session.execute(query).scalars().all())

    def list_unsynced(self) -> List[CalendarEvent]:
        with self.database_manager.session_scope() as session:
            query = (
                select(CalendarEvent)
                .options(selectinload(CalendarEvent.exceptions))
                .where(CalendarEvent.sync_status != SyncState.SYNCED.value)
                .order_by(CalendarEvent.created_at)
            )
            return list(session.execute(query).scalars().all())

    def sync_status_counts(self) -> Dict[str, int]:
        """Number of events per mirror status"""
        counts = {state.value: 0 for state in SyncState}
        with self.database_manager.session_scope() as session:
            rows = (
                session.query(CalendarEvent.sync_status, func.count(CalendarEvent.id))
                .group_by(CalendarEvent.sync_status)
                .all()
            )
        for status, count in rows:
            counts[status] = count
        return counts

    def _validate(self, event: CalendarEvent):
        if event.event_type not in EVENT_TYPES:
            raise InvalidEventDefinition(f"Unknown event type: {event.event_type}")
        if not event.title:
            raise InvalidEventDefinition("Event title is required")
        if event.start_date is None:
            raise InvalidEventDefinition("Event start date is required")
        if event.end_date is not None and event.end_date < event.start_date:
            raise InvalidEventDefinition(
                f"End date {event.end_date} is before start date {event.start_date}"
            )
        if event.start_time is not None and event.end_time is not None:
            same_day = event.is_recurring or event.end_date in (None, event.start_date)
            if same_day and event.end_time < event.start_time:
                raise InvalidEventDefinition(
                    f"End time {event.end_time} is before start time {event.start_time}"
                )
        try:
            ZoneInfo(event.timezone)
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            raise InvalidEventDefinition(f"Unknown timezone: {event.timezone}")
        try:
            parse_recurrence(event.is_recurring, event.recurrence_pattern)
            if event.is_recurring:
                pattern_end_date(event.recurrence_pattern)
        except (ValueError, TypeError) as e:
            raise InvalidEventDefinition(f"Invalid recurrence pattern: {e}")


def _dump_pattern(pattern: Optional[Union[str, Dict[str, Any]]]) -> Optional[str]:
    if pattern is None or isinstance(pattern, str):
        return pattern
    return json.dumps(pattern)
