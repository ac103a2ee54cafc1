"""
Calendar-date helpers.

Wire format is YYYY-MM-DD, read strictly as a (year, month, day) triplet and
never as an instant, so no timezone conversion can shift it by a day.
"""
import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from recurring_ledger.config import get_settings
from recurring_ledger.domain.errors import SeriesValidationError

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def parse_calendar_date(value, field: str = "date") -> date:
    """
    Parse a YYYY-MM-DD string into a date

    Raises:
        SeriesValidationError: malformed string or impossible date (2025-02-30)

    Example:
        >>> parse_calendar_date("2024-02-29")
        datetime.date(2024, 2, 29)
    """
    if isinstance(value, datetime):
        raise SeriesValidationError(f"{field}: expected a calendar date, got a timestamp")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise SeriesValidationError(f"{field}: expected YYYY-MM-DD")
    match = _DATE_RE.match(value.strip())
    if not match:
        raise SeriesValidationError(f"{field}: invalid date format {value!r}, expected YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as e:
        raise SeriesValidationError(f"{field}: {e}") from e


def parse_optional_date(value, field: str = "date") -> date | None:
    if value is None or value == "":
        return None
    return parse_calendar_date(value, field)


def format_calendar_date(d: date) -> str:
    return d.isoformat()


def previous_day(d: date) -> date:
    return d - timedelta(days=1)


def today() -> date:
    """Today's calendar date in the configured TIMEZONE."""
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()
