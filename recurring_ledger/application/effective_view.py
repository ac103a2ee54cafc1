"""
Effective view - persisted ledger entries merged with virtual (not yet generated) occurrences.

Read-only and lock-free: nothing built here is ever written back. It may run while
generation is in progress and then show a mid-generation state; it is a display
view, not the authoritative history.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy.orm import Session

from recurring_ledger.config import get_settings
from recurring_ledger.domain.errors import SeriesValidationError
from recurring_ledger.domain.recurrence import series_spec_from_db, iter_occurrences
from recurring_ledger.infrastructure.db.models import LedgerEntryModel, RecurringSeriesModel
from recurring_ledger.infrastructure.store import LedgerStore
from recurring_ledger.utils.dates import format_calendar_date, parse_optional_date, today


def virtual_entry_id(series_id: int, occurrence: date) -> str:
    return f"recurring-{series_id}-{format_calendar_date(occurrence)}"


@dataclass(frozen=True)
class EffectiveEntry:
    id: int | str  # int for persisted entries, "recurring-{series}-{date}" for virtual ones
    account_id: int
    category_id: int
    amount: Decimal
    kind: str
    description: str | None
    entry_date: date
    series_id: int | None
    is_override: bool
    is_virtual: bool
    created_at: datetime | None

    @classmethod
    def from_entry(cls, entry: LedgerEntryModel) -> "EffectiveEntry":
        return cls(
            id=entry.id,
            account_id=entry.account_id,
            category_id=entry.category_id,
            amount=entry.amount,
            kind=entry.kind,
            description=entry.description,
            entry_date=entry.entry_date,
            series_id=entry.series_id,
            is_override=entry.is_override,
            is_virtual=False,
            created_at=entry.created_at,
        )

    @classmethod
    def virtual(cls, series: RecurringSeriesModel, occurrence: date) -> "EffectiveEntry":
        return cls(
            id=virtual_entry_id(series.id, occurrence),
            account_id=series.account_id,
            category_id=series.category_id,
            amount=series.amount,
            kind=series.kind,
            description=series.description,
            entry_date=occurrence,
            series_id=series.id,
            is_override=False,
            is_virtual=True,
            created_at=series.created_at,
        )


class EffectiveViewBuilder:
    def __init__(self, db: Session):
        self.store = LedgerStore(db)
        self.max_iterations = get_settings().OCCURRENCE_MAX_ITERATIONS

    def build(self, account_id: int, start_date=None, end_date=None) -> list[EffectiveEntry]:
        """
        Effective entries of an owner in [start_date, end_date], date descending

        Args:
            start_date: inclusive lower bound (default: unbounded)
            end_date: inclusive upper bound (default: unbounded for persisted entries;
                virtual ones stop at the series end_date, or today for open-ended series)
        """
        start = parse_optional_date(start_date, "start_date")
        end = parse_optional_date(end_date, "end_date")
        if start is not None and end is not None and start > end:
            raise SeriesValidationError("start_date cannot be after end_date")

        persisted = self.store.find_entries(account_id=account_id, start_date=start, end_date=end)
        # Any persisted entry, override or generated, covers its (series, date)
        covered = {(entry.series_id, entry.entry_date) for entry in persisted if entry.series_id is not None}

        effective = [EffectiveEntry.from_entry(entry) for entry in persisted]
        for series in self.store.find_series(account_id=account_id, is_active=True):
            spec = series_spec_from_db(series)
            window_start = spec.start_date if start is None else max(start, spec.start_date)
            if end is None:
                window_end = spec.end_date or today()
            else:
                window_end = end if spec.end_date is None else min(end, spec.end_date)
            for occurrence in iter_occurrences(spec, window_start, window_end, self.max_iterations):
                if (series.id, occurrence) in covered:
                    continue
                effective.append(EffectiveEntry.virtual(series, occurrence))

        # Stable: persisted entries stay ahead of virtual ones on the same date
        effective.sort(key=lambda e: e.entry_date, reverse=True)
        return effective
