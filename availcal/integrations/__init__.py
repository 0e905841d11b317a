from availcal.integrations.google_calendar import GoogleCalendarClient, to_google_event

__all__ = ["GoogleCalendarClient", "to_google_event"]
