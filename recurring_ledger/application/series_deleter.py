"""Scoped delete of a recurring series"""
from dataclasses import dataclass
from sqlalchemy.orm import Session

from recurring_ledger.application.recurring_series import end_series_before, load_series_in_window
from recurring_ledger.domain.errors import SeriesValidationError
from recurring_ledger.domain.scope import Scope, parse_scope
from recurring_ledger.infrastructure.locks import series_locks
from recurring_ledger.infrastructure.store import LedgerStore
from recurring_ledger.utils.dates import parse_calendar_date


@dataclass
class DeleteResult:
    deleted: bool  # True only when the series row itself is gone
    entry_deleted: bool = False
    detached_entries: int = 0


class DeleteSeriesUseCase:
    def __init__(self, db: Session):
        self.db = db
        self.store = LedgerStore(db)

    def execute(self, series_id: int, effective_date, scope) -> DeleteResult:
        """
        single - delete the entry on effective_date if there is one
        future - soft stop: end the series the day before effective_date
        all    - delete the series, keep its entries with the back-reference cleared
        """
        effective = parse_calendar_date(effective_date, "effective_date")
        scope = parse_scope(scope)

        with series_locks.hold(series_id):
            try:
                series = load_series_in_window(self.store, series_id, effective)
                if scope is Scope.SINGLE:
                    entry = self.store.find_entry(series.id, effective)
                    if entry is not None:
                        self.store.delete_entry(entry)
                    result = DeleteResult(deleted=False, entry_deleted=entry is not None)
                elif scope is Scope.FUTURE:
                    end_series_before(self.store, series, effective)
                    result = DeleteResult(deleted=False)
                elif scope is Scope.ALL:
                    detached = self.store.detach_entries(series.id)
                    self.store.delete_series(series)
                    result = DeleteResult(deleted=True, detached_entries=detached)
                else:
                    raise SeriesValidationError(f"Unsupported scope: {scope}")
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        if result.deleted:
            series_locks.forget(series_id)
        return result
