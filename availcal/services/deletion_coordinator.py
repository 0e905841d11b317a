from datetime import date
from typing import Callable, List, Optional, Union
import logging

from ..exceptions import InvalidDeleteOption, MissingDate
from ..models.event import CalendarEvent
from ..models.event_response import DeleteOption, DeletionOutcome
from .event_store import EventStore
from .exception_store import ExceptionStore

logger = logging.getLogger(__name__)


class DeletionCoordinator:
    """
    Decides whether a delete request removes one occurrence or a whole series.

    - single event: always deleted outright, the option is ignored
    - recurring + this_day + date: a skip exception is stored
    - recurring + all_occurrences: the event, its exceptions and its mirror go
    - anything else is rejected before any state changes
    """

    def __init__(self, event_store: EventStore, exception_store: ExceptionStore):
        self.event_store = event_store
        self.exception_store = exception_store
        self._on_change_callbacks: List[Callable[[DeletionOutcome], None]] = []

    def add_on_change_callback(self, callback: Callable[[DeletionOutcome], None]):
        """Register a listener told about every applied delete, so cached occurrence lists can be dropped"""
        self._on_change_callbacks.append(callback)

    def _notify_change(self, outcome: DeletionOutcome):
        for callback in self._on_change_callbacks:
            callback(outcome)

    def request_delete(self, event_id: str, delete_option: Optional[Union[str, DeleteOption]] = None,
                       specific_date: Optional[Union[str, date]] = None) -> DeletionOutcome:
        option = _parse_option(delete_option)
        day = _parse_date(specific_date)
        event = self.event_store.get_event(event_id)

        if not event.is_recurring:
            outcome = self._delete_series(event)
        elif option is None:
            raise InvalidDeleteOption(
                f"Event {event_id} is recurring; choose '{DeleteOption.THIS_DAY.value}' "
                f"or '{DeleteOption.ALL_OCCURRENCES.value}'",
                details={'event_id': event_id}
            )
        elif option == DeleteOption.THIS_DAY:
            if day is None:
                raise MissingDate(
                    f"A date is required to delete a single day of event {event_id}",
                    details={'event_id': event_id}
                )
            outcome = self._delete_day(event, day)
        else:
            outcome = self._delete_series(event)

        self._notify_change(outcome)
        return outcome

    def _delete_day(self, event: CalendarEvent, day: date) -> DeletionOutcome:
        self.exception_store.add_skip_exception(event.id, day)
        logger.info(f"Removed {event.event_type} event {event.id} for {day}")
        return DeletionOutcome(
            event_id=event.id,
            action="exception_created",
            exception_date=day,
            message=f"{_label(event)} removed for {day:%B} {day.day}, {day.year}"
        )

    def _delete_series(self, event: CalendarEvent) -> DeletionOutcome:
        deleted = self.event_store.delete_event(event.id)
        logger.info(f"Deleted {event.event_type} event {event.id} completely")
        return DeletionOutcome(
            event_id=event.id,
            action="event_deleted",
            message=f"{_label(event)} deleted completely",
            mirror_status=deleted.sync_status if deleted.google_id else None
        )


def _label(event: CalendarEvent) -> str:
    return "Availability" if event.event_type == "availability" else "Unavailability"


def _parse_option(value) -> Optional[DeleteOption]:
    if value is None or isinstance(value, DeleteOption):
        return value
    try:
        return DeleteOption(value)
    except ValueError:
        raise InvalidDeleteOption(f"Unknown delete option: {value!r}")


def _parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise MissingDate(f"Not a valid date: {value!r}")
