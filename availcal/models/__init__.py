from availcal.models.base import Base
from availcal.models.event import CalendarEvent, EventException

# This ensures all models are registered with SQLAlchemy's metadata
__all__ = ['Base', 'CalendarEvent', 'EventException']
