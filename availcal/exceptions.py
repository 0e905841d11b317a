"""
Error taxonomy for the availability calendar.

Caller errors (NotFound, InvalidRecurrence, MissingDate, InvalidDeleteOption,
InvalidEventDefinition) are raised before any local mutation happens.
SyncFailed is raised after the local mutation has been committed.
"""

from typing import Any, Dict, Optional


class CalendarError(Exception):
    """Base exception for all calendar errors."""

    error_code = "calendar_error"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code


class NotFound(CalendarError):
    error_code = "not_found"


class InvalidRecurrence(CalendarError):
    """Raised when a per-date exception is requested for a single event."""

    error_code = "invalid_recurrence"


class MissingDate(CalendarError):
    error_code = "missing_date"


class InvalidDeleteOption(CalendarError):
    error_code = "invalid_delete_option"


class InvalidEventDefinition(CalendarError):
    """Raised when an event's dates, times or recurrence pattern are inconsistent."""

    error_code = "invalid_event"


class SyncFailed(CalendarError):
    """
    A remote mirror operation did not complete.

    The local state has already been committed and the event is left with
    sync_status = sync_failed so a later sync pass can retry it.
    """

    error_code = "sync_failed"

    def __init__(self, message: str, event_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.event_id = event_id


class RemoteCalendarError(Exception):
    """
    Error raised by a remote calendar client.

    `transient` distinguishes failures worth retrying (timeouts, 5xx, rate
    limiting) from permanent ones.
    """

    def __init__(self, message: str, transient: bool = True, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.transient = transient
        self.status_code = status_code


class RemoteNotFound(RemoteCalendarError):
    """The remote object does not exist (any more)."""

    def __init__(self, message: str, status_code: Optional[int] = 404):
        super().__init__(message, transient=False, status_code=status_code)
