"""
Recurrence rules for calendar events.

A rule is one of a closed set of variants: NoRecurrence, Weekly or EveryNDays.
Rules are parsed from the JSON stored in CalendarEvent.recurrence_pattern,
e.g. {"type": "weekly", "days": ["monday", "wednesday"]}.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import FrozenSet, Optional, Union
from dateutil.rrule import rrule, DAILY, WEEKLY, MO, TU, WE, TH, FR, SA, SU

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
RRULE_DAYS = ["MO", "TU", "WE", "TH", "FR", "SA", "SU"]
RRULE_WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)


@dataclass(frozen=True)
class NoRecurrence:
    def occurs_on(self, day: date, anchor: date) -> bool:
        return day == anchor


@dataclass(frozen=True)
class Weekly:
    """Occurs on every listed weekday (0 = Monday)."""

    weekdays: FrozenSet[int]

    def occurs_on(self, day: date, anchor: date) -> bool:
        return day >= anchor and day.weekday() in self.weekdays

    def build_rule(self, dtstart: datetime, until: Optional[datetime] = None) -> rrule:
        byweekday = [RRULE_WEEKDAYS[d] for d in sorted(self.weekdays)]
        return rrule(WEEKLY, byweekday=byweekday, dtstart=dtstart, until=until)

    def to_rrule(self) -> str:
        days = ",".join(RRULE_DAYS[d] for d in sorted(self.weekdays))
        return f"RRULE:FREQ=WEEKLY;BYDAY={days}"


@dataclass(frozen=True)
class EveryNDays:
    """Occurs every `interval` days counting from the anchor date."""

    interval: int = 1

    def occurs_on(self, day: date, anchor: date) -> bool:
        return day >= anchor and (day - anchor).days % self.interval == 0

    def build_rule(self, dtstart: datetime, until: Optional[datetime] = None) -> rrule:
        return rrule(DAILY, interval=self.interval, dtstart=dtstart, until=until)

    def to_rrule(self) -> str:
        return f"RRULE:FREQ=DAILY;INTERVAL={self.interval}"


Recurrence = Union[NoRecurrence, Weekly, EveryNDays]


def parse_recurrence(is_recurring: bool, pattern: Optional[Union[str, dict]]) -> Recurrence:
    """Build a recurrence rule from the stored flag and pattern.

    Raises ValueError for patterns that cannot be interpreted.
    """
    if not is_recurring:
        return NoRecurrence()
    if not pattern:
        return EveryNDays(1)

    data = json.loads(pattern) if isinstance(pattern, str) else pattern
    if not isinstance(data, dict):
        raise ValueError(f"Recurrence pattern must be an object, got {type(data).__name__}")

    kind = data.get("type", "weekly")
    if kind == "weekly":
        names = data.get("days") or []
        if not names:
            raise ValueError("Weekly recurrence needs at least one day")
        weekdays = set()
        for name in names:
            name = str(name).lower()
            if name not in WEEKDAYS:
                raise ValueError(f"Unknown weekday: {name}")
            weekdays.add(WEEKDAYS.index(name))
        return Weekly(frozenset(weekdays))

    if kind == "daily":
        interval = data.get("interval", 1)
        if isinstance(interval, bool) or not isinstance(interval, int):
            raise ValueError(f"Daily recurrence interval must be a whole number, got {interval!r}")
        if interval < 1:
            raise ValueError("Daily recurrence interval must be at least 1")
        return EveryNDays(interval)

    raise ValueError(f"Unsupported recurrence type: {kind}")


def pattern_end_date(pattern: Optional[Union[str, dict]]) -> Optional[date]:
    """Return the optional "endDate" bound carried inside a pattern."""
    if not pattern:
        return None
    data = json.loads(pattern) if isinstance(pattern, str) else pattern
    if isinstance(data, dict) and data.get("endDate"):
        return date.fromisoformat(data["endDate"])
    return None
