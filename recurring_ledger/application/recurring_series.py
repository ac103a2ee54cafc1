"""Recurring series use cases - create and read"""
from datetime import date
from sqlalchemy.orm import Session

from recurring_ledger.domain.errors import SeriesNotFoundError, SeriesValidationError
from recurring_ledger.domain.recurrence import VALID_FREQ
from recurring_ledger.infrastructure.db.models import RecurringSeriesModel
from recurring_ledger.infrastructure.store import LedgerStore
from recurring_ledger.utils.dates import parse_calendar_date, parse_optional_date, previous_day
from recurring_ledger.utils.validation import validate_and_normalize_amount


VALID_KINDS = frozenset({"income", "expense"})


def validate_kind(kind: str) -> str:
    if kind not in VALID_KINDS:
        raise SeriesValidationError(f"Invalid entry kind: {kind}")
    return kind


def validate_frequency(frequency: str) -> str:
    if frequency not in VALID_FREQ:
        raise SeriesValidationError(f"Invalid frequency: {frequency}")
    return frequency


def validate_amount(amount):
    try:
        return validate_and_normalize_amount(amount)
    except ValueError as e:
        raise SeriesValidationError(str(e)) from e


def validate_window(start_date: date, end_date: date | None) -> None:
    if end_date is not None and end_date < start_date:
        raise SeriesValidationError("End date cannot be before the start date")


class CreateRecurringSeriesUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(
        self,
        account_id: int,
        category_id: int,
        amount,
        kind: str,
        frequency: str,
        start_date,
        end_date=None,
        description: str | None = None,
        is_active: bool = True,
    ) -> RecurringSeriesModel:
        validate_kind(kind)
        validate_frequency(frequency)
        amt = validate_amount(amount)
        start = parse_calendar_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")
        validate_window(start, end)
        self.store.ensure_references(account_id, category_id)

        series = self.store.create_series(
            account_id=account_id,
            category_id=category_id,
            amount=amt,
            kind=kind,
            description=description,
            frequency=frequency,
            start_date=start,
            end_date=end,
            # start_date is always an occurrence of its own series
            next_occurrence=start,
            is_active=is_active,
        )
        self.db.commit()
        return series


def get_series(db: Session, series_id: int) -> RecurringSeriesModel:
    series = LedgerStore(db).get_series(series_id)
    if series is None:
        raise SeriesNotFoundError(f"Recurring series #{series_id} not found")
    return series


def list_series(db: Session, account_id: int, is_active: bool | None = None) -> list[RecurringSeriesModel]:
    return LedgerStore(db).find_series(account_id=account_id, is_active=is_active)


def list_due_series(db: Session, target_date: date) -> list[RecurringSeriesModel]:
    return LedgerStore(db).list_due_series(target_date)


# ----------------------------------------------------------------------
# Helpers shared by scoped edit and scoped delete
# ----------------------------------------------------------------------

def load_series_in_window(store: LedgerStore, series_id: int, effective_date: date) -> RecurringSeriesModel:
    """
    Lock and load a series, rejecting an effective date outside [start_date, end_date]

    Raises:
        SeriesNotFoundError: no such series
        SeriesValidationError: effective date outside the series window
    """
    series = store.get_series(series_id, for_update=True)
    if series is None:
        raise SeriesNotFoundError(f"Recurring series #{series_id} not found")
    if effective_date < series.start_date:
        raise SeriesValidationError("Effective date cannot be before the series start date")
    if series.end_date is not None and effective_date > series.end_date:
        raise SeriesValidationError("Effective date cannot be after the series end date")
    return series


def end_series_before(store: LedgerStore, series: RecurringSeriesModel, effective_date: date) -> None:
    """Stop a series so that its last possible occurrence is the day before effective_date."""
    if effective_date <= series.start_date:
        # No window left: deactivate instead of writing end_date < start_date
        store.update_series(series, is_active=False, next_occurrence=None)
        return
    new_end = previous_day(effective_date)
    changes = {"end_date": new_end}
    if series.next_occurrence is not None and series.next_occurrence > new_end:
        changes["next_occurrence"] = None
    store.update_series(series, **changes)
