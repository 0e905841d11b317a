from datetime import date, timedelta
import json
import pytest

from availcal.models.event import CalendarEvent, EventException
from availcal.services.occurrence_expander import Occurrences, expand


def make_event(start, end=None, is_recurring=True, pattern=None):
    return CalendarEvent(
        id="evt-1",
        title="Unavailable",
        event_type="unavailability",
        owner_id="tech-42",
        start_date=start,
        end_date=end,
        is_recurring=is_recurring,
        recurrence_pattern=json.dumps(pattern) if pattern else None,
        exceptions=[]
    )


def mondays(start, end):
    day = start
    while day <= end:
        if day.weekday() == 0:
            yield day
        day += timedelta(days=1)


def test_weekly_mondays_skip_one_day():
    """Every Monday of Q1 2025 except February 3"""
    event = make_event(date(2025, 1, 6), date(2025, 3, 31), pattern={"type": "weekly", "days": ["monday"]})

    result = list(expand(event, date(2025, 1, 1), date(2025, 3, 31), {date(2025, 2, 3)}))

    expected = [d for d in mondays(date(2025, 1, 6), date(2025, 3, 31)) if d != date(2025, 2, 3)]
    assert result == expected
    assert len(result) == 12
    assert date(2025, 2, 3) not in result
    assert date(2025, 1, 27) in result and date(2025, 2, 10) in result


def test_exceptions_loaded_on_event_are_used_by_default():
    event = make_event(date(2025, 1, 6), date(2025, 1, 31), pattern={"type": "weekly", "days": ["monday"]})
    event.exceptions.append(EventException(id="x", event_id="evt-1", exception_date=date(2025, 1, 13)))

    assert list(expand(event, date(2025, 1, 1), date(2025, 1, 31))) == [
        date(2025, 1, 6), date(2025, 1, 20), date(2025, 1, 27)
    ]


def test_range_is_clamped_to_series_window():
    event = make_event(date(2025, 1, 6), date(2025, 1, 20), pattern={"type": "weekly", "days": ["monday"]})
    result = list(expand(event, date(2024, 12, 1), date(2025, 12, 31), frozenset()))
    assert result == [date(2025, 1, 6), date(2025, 1, 13), date(2025, 1, 20)]


def test_open_ended_series_stops_at_range_end():
    event = make_event(date(2025, 1, 1), pattern={"type": "daily"})
    result = list(expand(event, date(2030, 5, 1), date(2030, 5, 3), frozenset()))
    assert result == [date(2030, 5, 1), date(2030, 5, 2), date(2030, 5, 3)]


def test_pattern_end_date_bounds_open_series():
    event = make_event(date(2025, 1, 1), pattern={"type": "daily", "endDate": "2025-01-03"})
    assert list(expand(event, date(2025, 1, 1), date(2025, 1, 31), frozenset())) == [
        date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)
    ]


def test_every_n_days_aligns_to_anchor():
    event = make_event(date(2025, 1, 1), pattern={"type": "daily", "interval": 3})
    # 1, 4, 7, 10, 13 ... the range starts mid-cycle
    result = list(expand(event, date(2025, 1, 5), date(2025, 1, 14), frozenset()))
    assert result == [date(2025, 1, 7), date(2025, 1, 10), date(2025, 1, 13)]


def test_single_event_occurs_once():
    event = make_event(date(2025, 2, 14), is_recurring=False)
    assert list(expand(event, date(2025, 2, 1), date(2025, 2, 28), frozenset())) == [date(2025, 2, 14)]
    assert list(expand(event, date(2025, 3, 1), date(2025, 3, 31), frozenset())) == []


def test_empty_when_range_is_reversed():
    event = make_event(date(2025, 1, 6), pattern={"type": "weekly", "days": ["monday"]})
    assert list(expand(event, date(2025, 3, 1), date(2025, 2, 1), frozenset())) == []


def test_occurrences_are_lazy_and_restartable():
    event = make_event(date(2025, 1, 1), pattern={"type": "daily"})
    occurrences = Occurrences(event, date(2025, 1, 1), date(9999, 12, 30))

    iterator = iter(occurrences)
    assert next(iterator) == date(2025, 1, 1)
    assert next(iterator) == date(2025, 1, 2)
    # a fresh iteration starts over
    assert next(iter(occurrences)) == date(2025, 1, 1)


def test_invalid_pattern_raises_on_expansion():
    event = make_event(date(2025, 1, 1), pattern={"type": "hourly"})
    with pytest.raises(ValueError):
        expand(event, date(2025, 1, 1), date(2025, 1, 31), frozenset())
