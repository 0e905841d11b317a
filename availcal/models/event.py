from datetime import datetime, date
from typing import Optional
from zoneinfo import ZoneInfo
from sqlalchemy import (
    Column, String, Integer, Date, Time, DateTime, Boolean, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from availcal.models.base import Base
from availcal.models.recurrence import Recurrence, parse_recurrence, pattern_end_date
from availcal.models.sync_status import SyncState

EVENT_TYPES = ("availability", "unavailability")
SKIP = "skip"


class CalendarEvent(Base):
    """A single or recurring availability/unavailability entry"""
    __tablename__ = 'calendar_events'

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    event_type = Column(String, nullable=False, default='availability')
    owner_id = Column(String, nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # open-ended when recurring
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    timezone = Column(String, nullable=False, default='America/New_York')
    location = Column(String, nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(String, nullable=True)
    google_id = Column(String, unique=True, nullable=True)
    sync_status = Column(String, nullable=False, default=SyncState.UNSYNCED.value)
    sync_error = Column(String, nullable=True)
    last_synced = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(ZoneInfo('UTC')))
    updated_at = Column(DateTime(timezone=True), onupdate=lambda: datetime.now(ZoneInfo('UTC')))
    revision = Column(Integer, nullable=False, default=1)  # bumped on every content edit

    exceptions = relationship(
        "EventException",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventException.exception_date",
    )

    @property
    def recurrence(self) -> Recurrence:
        return parse_recurrence(self.is_recurring, self.recurrence_pattern)

    @property
    def series_end(self) -> Optional[date]:
        """Last date the series may occur on, None when open-ended"""
        if not self.is_recurring:
            return self.start_date
        if self.end_date:
            return self.end_date
        return pattern_end_date(self.recurrence_pattern)

    def occurs_on(self, day: date) -> bool:
        end = self.series_end
        if end is not None and day > end:
            return False
        return self.recurrence.occurs_on(day, self.start_date)

    def exception_dates(self) -> frozenset:
        return frozenset(e.exception_date for e in self.exceptions)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'event_type': self.event_type,
            'owner_id': self.owner_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'timezone': self.timezone,
            'location': self.location,
            'is_recurring': self.is_recurring,
            'recurrence_pattern': self.recurrence_pattern,
            'google_id': self.google_id,
            'sync_status': self.sync_status,
            'sync_error': self.sync_error,
            'last_synced': self.last_synced.isoformat() if self.last_synced else None,
            'exceptions': [e.exception_date.isoformat() for e in self.exceptions]
        }


class EventException(Base):
    """Per-date override of a recurring event"""
    __tablename__ = 'calendar_event_exceptions'
    __table_args__ = (
        UniqueConstraint('event_id', 'exception_date', name='uq_event_exception_date'),
    )

    id = Column(String, primary_key=True)
    event_id = Column(String, ForeignKey('calendar_events.id', ondelete='CASCADE'), nullable=False, index=True)
    exception_date = Column(Date, nullable=False)
    kind = Column(String, nullable=False, default=SKIP)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(ZoneInfo('UTC')))

    event = relationship("CalendarEvent", back_populates="exceptions")

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'exception_date': self.exception_date.isoformat(),
            'kind': self.kind
        }
