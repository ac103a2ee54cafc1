"""
Occurrence policy for recurring series.

Pure calendar-date logic: works on datetime.date only (no timezone, no instants).
The generation engine, the series editor and the effective view all go through
these functions, so the materialized history and the display view never disagree.

Frequencies:
- daily: every date inside [start_date, end_date]
- weekly: every 7 days from start_date (same weekday)
- monthly: start_date's day of month; a start day > 28 is clamped to the month length
- yearly: start_date's month and day; a Feb 29 start falls on Feb 28 in non-leap years
"""
import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator


DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
YEARLY = "yearly"
VALID_FREQ = frozenset({DAILY, WEEKLY, MONTHLY, YEARLY})

# Bounded-search guard for find_next_valid_occurrence. Exhausting it is a
# silent truncation ("no further occurrence"), not an error.
MAX_SEARCH_ITERATIONS = 100


@dataclass(frozen=True)
class SeriesSpec:
    frequency: str
    start_date: date
    end_date: date | None  # inclusive


def series_spec_from_db(row) -> SeriesSpec:
    """Build SeriesSpec from a RecurringSeriesModel row (any object with matching attributes)."""
    return SeriesSpec(
        frequency=row.frequency,
        start_date=row.start_date,
        end_date=row.end_date,
    )


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, n: int) -> date:
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    last = last_day_of_month(year, month)
    day = min(d.day, last)
    return date(year, month, day)


def add_years(d: date, n: int) -> date:
    year = d.year + n
    return date(year, d.month, min(d.day, last_day_of_month(year, d.month)))


def next_occurrence(d: date, frequency: str) -> date:
    """Raw calendar advance: +1 day / +7 days / +1 calendar month / +1 calendar year.

    Month and year steps roll over on the calendar and clamp to the last day of a
    shorter month (Jan 31 -> Feb 28/29), never a fixed number of days.
    """
    if frequency == DAILY:
        return d + timedelta(days=1)
    if frequency == WEEKLY:
        return d + timedelta(days=7)
    if frequency == MONTHLY:
        return add_months(d, 1)
    if frequency == YEARLY:
        return add_years(d, 1)
    raise ValueError(f"invalid frequency: {frequency}")


def _monthly_day(spec: SeriesSpec, year: int, month: int) -> int:
    # Equal to the start day unless it is past the end of this month
    return min(spec.start_date.day, last_day_of_month(year, month))


def _yearly_date(spec: SeriesSpec, year: int) -> date:
    start = spec.start_date
    if start.month == 2 and start.day == 29 and not calendar.isleap(year):
        return date(year, 2, 28)
    return date(year, start.month, start.day)


def _in_window(d: date, spec: SeriesSpec) -> bool:
    if d < spec.start_date:
        return False
    if spec.end_date is not None and d > spec.end_date:
        return False
    return True


def is_valid_occurrence(d: date, spec: SeriesSpec) -> bool:
    """Does the series fire on date d?"""
    if not _in_window(d, spec):
        return False

    start = spec.start_date
    if spec.frequency == DAILY:
        return True
    if spec.frequency == WEEKLY:
        return d.weekday() == start.weekday() and (d - start).days % 7 == 0
    if spec.frequency == MONTHLY:
        return d.day == _monthly_day(spec, d.year, d.month)
    if spec.frequency == YEARLY:
        return d == _yearly_date(spec, d.year)
    return False


def advance_occurrence(d: date, spec: SeriesSpec) -> date:
    """First date strictly after d that lies on the series' calendar grid.

    For a valid d this is next_occurrence(d, frequency) re-anchored on the start
    day: a monthly series started on the 31st goes Feb 29 -> Mar 31, not Mar 29.
    For an off-grid d (a desynchronized pointer) it snaps forward onto the grid.
    """
    start = spec.start_date
    if d < start:
        return start

    if spec.frequency == DAILY:
        return d + timedelta(days=1)
    if spec.frequency == WEEKLY:
        weeks = (d - start).days // 7 + 1
        return start + timedelta(days=weeks * 7)
    if spec.frequency == MONTHLY:
        candidate = date(d.year, d.month, _monthly_day(spec, d.year, d.month))
        if candidate > d:
            return candidate
        month_start = add_months(date(d.year, d.month, 1), 1)
        return date(month_start.year, month_start.month,
                    _monthly_day(spec, month_start.year, month_start.month))
    if spec.frequency == YEARLY:
        candidate = _yearly_date(spec, d.year)
        if candidate > d:
            return candidate
        return _yearly_date(spec, d.year + 1)
    raise ValueError(f"invalid frequency: {spec.frequency}")


def find_next_valid_occurrence(
    d: date,
    spec: SeriesSpec,
    max_iterations: int = MAX_SEARCH_ITERATIONS,
) -> date | None:
    """First valid occurrence on or after d (d is clamped up to start_date).

    Returns None when the search passes end_date, stops advancing, or runs out of
    max_iterations. The last case is a bounded-search truncation, not an error.
    """
    current = max(d, spec.start_date)
    for _ in range(max_iterations):
        if spec.end_date is not None and current > spec.end_date:
            return None
        if is_valid_occurrence(current, spec):
            return current
        nxt = advance_occurrence(current, spec)
        if nxt <= current:
            return None
        current = nxt
    return None


def following_occurrence(
    d: date,
    spec: SeriesSpec,
    max_iterations: int = MAX_SEARCH_ITERATIONS,
) -> date | None:
    """First valid occurrence strictly after d."""
    return find_next_valid_occurrence(advance_occurrence(d, spec), spec, max_iterations)


def iter_occurrences(
    spec: SeriesSpec,
    window_start: date,
    window_end: date,
    max_iterations: int = MAX_SEARCH_ITERATIONS,
) -> Iterator[date]:
    """Valid occurrence dates in [window_start, window_end] (inclusive), ascending."""
    if window_start > window_end:
        return
    current = find_next_valid_occurrence(window_start, spec, max_iterations)
    while current is not None and current <= window_end:
        yield current
        current = following_occurrence(current, spec, max_iterations)
