"""
Occurrence expansion.

Turns an event definition plus its skip exceptions into the concrete dates it
appears on within a bounded range. Nothing here touches the database; callers
pass in a snapshot of the event and its exception dates.
"""

from datetime import date, datetime, time
from typing import AbstractSet, Iterator, Optional
from dateutil.rrule import rruleset

from availcal.models.event import CalendarEvent
from availcal.models.recurrence import NoRecurrence, Weekly, EveryNDays


class Occurrences:
    """Lazy, restartable sequence of occurrence dates in ascending order"""

    def __init__(self, event: CalendarEvent, range_start: date, range_end: date,
                 exceptions: AbstractSet[date] = frozenset()):
        self.event = event
        self.range_start = range_start
        self.range_end = range_end
        self.exceptions = frozenset(exceptions)
        self._recurrence = event.recurrence

    def __iter__(self) -> Iterator[date]:
        event = self.event
        rule = self._recurrence

        if isinstance(rule, NoRecurrence):
            if self.range_start <= event.start_date <= self.range_end:
                yield event.start_date
            return

        first = max(self.range_start, event.start_date)
        last = self.range_end
        series_end = event.series_end
        if series_end is not None:
            last = min(last, series_end)

        if not isinstance(rule, (Weekly, EveryNDays)):
            raise TypeError(f"Unhandled recurrence rule: {rule!r}")
        if last < first:
            return

        rules = rruleset()
        rules.rrule(rule.build_rule(_midnight(event.start_date), until=_midnight(last)))
        for day in self.exceptions:
            rules.exdate(_midnight(day))

        for occurrence in rules.xafter(_midnight(first), inc=True):
            yield occurrence.date()

    def __repr__(self):
        return f"Occurrences(event={self.event.id!r}, {self.range_start}..{self.range_end})"


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def expand(event: CalendarEvent, range_start: date, range_end: date,
           exceptions: Optional[AbstractSet[date]] = None) -> Occurrences:
    """Expand `event` over [range_start, range_end], both ends inclusive.

    When `exceptions` is not given, the exceptions already loaded on the event
    are used.
    """
    if exceptions is None:
        exceptions = event.exception_dates()
    return Occurrences(event, range_start, range_end, exceptions)
