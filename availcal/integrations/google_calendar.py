from datetime import date, datetime, time, timedelta
from typing import Any, Dict
from zoneinfo import ZoneInfo
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from google.auth.exceptions import TransportError
import logging

from ..exceptions import RemoteCalendarError, RemoteNotFound
from ..models.event import CalendarEvent
from ..models.recurrence import NoRecurrence
from ..services.occurrence_expander import Occurrences

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/calendar.events']

# Google Calendar colorId per event type
EVENT_COLORS = {
    'availability': '2',    # green
    'unavailability': '11'  # red
}

TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}


class GoogleCalendarClient:
    """Remote calendar backed by the Google Calendar v3 API"""

    def __init__(self, config: dict, service=None):
        self.config = config
        self.calendar_id = config.get('calendar_id', 'primary')
        self.service = service
        if self.service is None:
            self._get_service()

    def _get_service(self):
        """Initialize the Google Calendar service with service account credentials"""
        info = self.config.get('service_account_info')
        if not info:
            raise ValueError("Google service account credentials are not configured")
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
        self.service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)
        logger.info("Successfully initialized Google Calendar service")

    def create_remote_event(self, payload: Dict[str, Any]) -> str:
        """Insert an event and return its Google id"""
        request = self.service.events().insert(calendarId=self.calendar_id, body=payload)
        created = self._execute(request, f"creating event in calendar {self.calendar_id}")
        return created["id"]

    def update_remote_event(self, remote_id: str, payload: Dict[str, Any]):
        request = self.service.events().update(calendarId=self.calendar_id, eventId=remote_id, body=payload)
        self._execute(request, f"updating event {remote_id}")

    def delete_remote_event(self, remote_id: str):
        request = self.service.events().delete(calendarId=self.calendar_id, eventId=remote_id)
        self._execute(request, f"deleting event {remote_id}")

    def _execute(self, request, action: str):
        try:
            return request.execute()
        except HttpError as e:
            raise self._translate(e, action)
        except (TransportError, OSError) as e:
            logger.error(f"Network error while {action}: {e}")
            raise RemoteCalendarError(f"Network error while {action}: {e}", transient=True)

    def _translate(self, error: HttpError, action: str) -> RemoteCalendarError:
        status = error.resp.status
        logger.error(f"Google Calendar error {status} while {action}: {error}")
        if status in (404, 410):
            return RemoteNotFound(f"Remote event not found while {action}", status_code=status)
        return RemoteCalendarError(
            f"Google Calendar returned {status} while {action}",
            transient=status in TRANSIENT_STATUSES,
            status_code=status
        )


def to_google_event(event: CalendarEvent) -> Dict[str, Any]:
    """Build the Google Calendar representation of an event.

    Recurring events become a single Google series with an RRULE. Skip
    exceptions stay local and are not part of the payload.
    """
    first_day = _first_occurrence(event)
    last_day = event.series_end
    all_day = event.start_time is None and event.end_time is None

    if event.is_recurring:
        end_day = first_day
    else:
        end_day = event.end_date or event.start_date

    if all_day:
        start = {'date': first_day.isoformat()}
        end = {'date': (end_day + timedelta(days=1)).isoformat()}
    else:
        start = {
            'dateTime': datetime.combine(first_day, event.start_time or time(0, 0)).isoformat(),
            'timeZone': event.timezone
        }
        end = {
            'dateTime': datetime.combine(end_day, event.end_time or time(23, 59, 59)).isoformat(),
            'timeZone': event.timezone
        }

    payload = {
        'summary': event.title,
        'description': event.description or '',
        'location': event.location or '',
        'start': start,
        'end': end,
        'colorId': EVENT_COLORS.get(event.event_type, '1'),
        'transparency': 'transparent' if event.event_type == 'availability' else 'opaque'
    }

    rule = event.recurrence
    if not isinstance(rule, NoRecurrence):
        rrule = rule.to_rrule()
        if last_day is not None:
            if all_day:
                until = last_day.strftime("%Y%m%d")
            else:
                # end of the last day in the event's own timezone, expressed in UTC
                last_moment = datetime.combine(last_day, time(23, 59, 59), tzinfo=ZoneInfo(event.timezone))
                until = last_moment.astimezone(ZoneInfo("UTC")).strftime("%Y%m%dT%H%M%SZ")
            rrule += f";UNTIL={until}"
        payload['recurrence'] = [rrule]
    return payload


def _first_occurrence(event: CalendarEvent) -> date:
    # Google treats DTSTART as an occurrence, so anchor the series on a matching day
    window = Occurrences(event, event.start_date, event.start_date + timedelta(days=6))
    return next(iter(window), event.start_date)
