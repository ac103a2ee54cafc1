"""Temporal scope of a series edit or delete"""
from enum import Enum

from recurring_ledger.domain.errors import SeriesValidationError


class Scope(str, Enum):
    SINGLE = "single"   # only the occurrence on the effective date
    FUTURE = "future"   # the effective date and everything after it
    ALL = "all"         # the whole series


def parse_scope(value) -> Scope:
    if isinstance(value, Scope):
        return value
    try:
        return Scope(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in Scope)
        raise SeriesValidationError(f"Invalid scope: {value!r} (expected one of: {allowed})") from None
