"""
Scoped edit of a recurring series.

single - override entry for one occurrence, series untouched
future - split: end the series the day before, start a new one on the effective date
all    - update the series in place

Past ledger entries are never rewritten by any scope.
"""
from dataclasses import dataclass
from sqlalchemy.orm import Session

from recurring_ledger.config import get_settings
from recurring_ledger.application.recurring_series import (
    end_series_before,
    load_series_in_window,
    validate_amount,
    validate_frequency,
    validate_kind,
    validate_window,
)
from recurring_ledger.domain.errors import SeriesValidationError
from recurring_ledger.domain.recurrence import SeriesSpec, find_next_valid_occurrence, following_occurrence
from recurring_ledger.domain.scope import Scope, parse_scope
from recurring_ledger.infrastructure.db.models import LedgerEntryModel, RecurringSeriesModel
from recurring_ledger.infrastructure.locks import series_locks
from recurring_ledger.infrastructure.store import LedgerStore
from recurring_ledger.utils.dates import parse_calendar_date, parse_optional_date


EDITABLE_FIELDS = ("category_id", "amount", "kind", "description", "frequency", "end_date", "is_active")
# Fields copied onto an override entry
ENTRY_VALUE_FIELDS = ("category_id", "amount", "kind", "description")


def normalize_updates(updates: dict) -> dict:
    """Validate a partial update; only keys present in `updates` are returned."""
    unknown = set(updates) - set(EDITABLE_FIELDS)
    if unknown:
        raise SeriesValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    changes = {}
    if "category_id" in updates:
        try:
            changes["category_id"] = int(updates["category_id"])
        except (TypeError, ValueError):
            raise SeriesValidationError("category_id must be an integer") from None
    if "amount" in updates:
        changes["amount"] = validate_amount(updates["amount"])
    if "kind" in updates:
        changes["kind"] = validate_kind(updates["kind"])
    if "description" in updates:
        changes["description"] = updates["description"]
    if "frequency" in updates:
        changes["frequency"] = validate_frequency(updates["frequency"])
    if "end_date" in updates:
        changes["end_date"] = parse_optional_date(updates["end_date"], "end_date")
    if "is_active" in updates:
        if not isinstance(updates["is_active"], bool):
            raise SeriesValidationError("is_active must be a boolean")
        changes["is_active"] = updates["is_active"]
    return changes


@dataclass
class EditResult:
    series: RecurringSeriesModel
    new_series: RecurringSeriesModel | None = None
    override_entry: LedgerEntryModel | None = None


class EditSeriesUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)
        self.max_iterations = get_settings().OCCURRENCE_MAX_ITERATIONS

    def execute(self, series_id: int, effective_date, scope, updates: dict | None = None) -> EditResult:
        """
        Edit a series from effective_date on, within the given scope

        Raises:
            SeriesValidationError: bad date/scope/field, effective date outside the window
            MissingReferenceError: the (new) category does not exist
            SeriesNotFoundError: no such series
        """
        effective = parse_calendar_date(effective_date, "effective_date")
        scope = parse_scope(scope)
        changes = normalize_updates(updates or {})

        with series_locks.hold(series_id):
            try:
                series = load_series_in_window(self.store, series_id, effective)
                if scope is Scope.SINGLE:
                    result = self._edit_single(series, effective, changes)
                elif scope is Scope.FUTURE:
                    result = self._edit_future(series, effective, changes)
                elif scope is Scope.ALL:
                    result = self._edit_all(series, changes)
                else:
                    raise SeriesValidationError(f"Unsupported scope: {scope}")
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        return result

    def _edit_single(self, series: RecurringSeriesModel, effective, changes: dict) -> EditResult:
        values = {
            field: changes[field] if field in changes else getattr(series, field)
            for field in ENTRY_VALUE_FIELDS
        }
        self.store.ensure_references(series.account_id, values["category_id"])

        entry = self.store.find_entry(series.id, effective)
        if entry is None:
            entry = self.store.create_entry(
                account_id=series.account_id,
                entry_date=effective,
                series_id=series.id,
                is_override=True,
                **values,
            )
        else:
            self.store.update_entry(entry, is_override=True, **values)
        return EditResult(series=series, override_entry=entry)

    def _edit_future(self, series: RecurringSeriesModel, effective, changes: dict) -> EditResult:
        inherited = {
            field: changes[field] if field in changes else getattr(series, field)
            for field in ("category_id", "amount", "kind", "description", "frequency", "is_active")
        }
        # The new series only ends where the update says so
        new_end = changes.get("end_date")
        validate_window(effective, new_end)
        self.store.ensure_references(series.account_id, inherited["category_id"])

        end_series_before(self.store, series, effective)

        spec = SeriesSpec(frequency=inherited["frequency"], start_date=effective, end_date=new_end)
        new_series = self.store.create_series(
            account_id=series.account_id,
            start_date=effective,
            end_date=new_end,
            next_occurrence=find_next_valid_occurrence(effective, spec, self.max_iterations),
            **inherited,
        )
        return EditResult(series=series, new_series=new_series)

    def _edit_all(self, series: RecurringSeriesModel, changes: dict) -> EditResult:
        frequency = changes.get("frequency", series.frequency)
        new_end = changes["end_date"] if "end_date" in changes else series.end_date
        validate_window(series.start_date, new_end)
        if "category_id" in changes:
            self.store.ensure_references(series.account_id, changes["category_id"])

        spec = SeriesSpec(frequency=frequency, start_date=series.start_date, end_date=new_end)
        pointer = series.next_occurrence
        if pointer is None:
            if changes.get("is_active") is True and not series.is_active:
                # Reactivated: resume after the last entry, or from the start
                entries = self.store.find_entries(series_id=series.id)
                if entries:
                    pointer = following_occurrence(entries[0].entry_date, spec, self.max_iterations)
                else:
                    pointer = find_next_valid_occurrence(series.start_date, spec, self.max_iterations)
            elif series.end_date is not None and (new_end is None or new_end > series.end_date):
                # Window reopened past the old end
                pointer = following_occurrence(series.end_date, spec, self.max_iterations)
        elif frequency != series.frequency:
            # Continue from the pending pointer, not from start_date
            pointer = find_next_valid_occurrence(pointer, spec, self.max_iterations)
        elif new_end is not None and pointer > new_end:
            pointer = None

        self.store.update_series(series, next_occurrence=pointer, **changes)
        return EditResult(series=series)
