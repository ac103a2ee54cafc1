"""
Generation Engine - catch-up materialization of recurring series into ledger entries.

Called by the scheduler (daily job) or the API. For every due series it walks from
the stored next_occurrence pointer up to the target date, creating one ledger entry
per occurrence. Idempotent: every date is checked before insert, so running twice
for the same target creates nothing the second time.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, asdict
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recurring_ledger.config import get_settings
from recurring_ledger.domain.errors import GenerationFailure, MissingReferenceError, SeriesValidationError
from recurring_ledger.domain.recurrence import (
    SeriesSpec,
    series_spec_from_db,
    is_valid_occurrence,
    next_occurrence,
    find_next_valid_occurrence,
    following_occurrence,
)
from recurring_ledger.infrastructure.db.models import RecurringSeriesModel
from recurring_ledger.infrastructure.locks import series_locks
from recurring_ledger.infrastructure.store import LedgerStore
from recurring_ledger.utils.dates import parse_calendar_date, today

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    created: int = 0
    skipped: int = 0

    def add(self, other: "GenerationResult") -> None:
        self.created += other.created
        self.skipped += other.skipped

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class GenerationEngine:
    """
    Materializes due occurrences of all active series.

    Sequential on the caller's session by default. With a session factory and
    max_workers > 1, due series are processed in a thread pool, one session per
    worker; each worker holds the series lock for its whole catch-up walk.
    """

    def __init__(
        self,
        db: Session,
        session_factory=None,
        max_workers: int = 1,
        max_iterations: int | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.session_factory = session_factory
        self.max_workers = max(1, max_workers)
        self.max_iterations = max_iterations or settings.OCCURRENCE_MAX_ITERATIONS
        self.default_catch_up_days = settings.GENERATION_MAX_CATCH_UP_DAYS

    def generate(self, target_date=None, max_catch_up_days: int | None = None) -> GenerationResult:
        """
        Generate ledger entries for every due series up to target_date (inclusive)

        Args:
            target_date: date or "YYYY-MM-DD"; defaults to today in the configured TIMEZONE
            max_catch_up_days: per-series step cap (default GENERATION_MAX_CATCH_UP_DAYS)

        Returns:
            GenerationResult with aggregate created/skipped counts
        """
        target = today() if target_date is None else parse_calendar_date(target_date, "target_date")
        cap = self.default_catch_up_days if max_catch_up_days is None else max_catch_up_days
        if cap < 1:
            raise SeriesValidationError("max_catch_up_days must be >= 1")

        due_ids = [series.id for series in LedgerStore(self.db).list_due_series(target)]
        # Close the listing transaction before any series gets locked
        self.db.commit()

        if self.session_factory is not None and self.max_workers > 1 and len(due_ids) > 1:
            result = self._generate_parallel(due_ids, target, cap)
        else:
            result = GenerationResult()
            for series_id in due_ids:
                result.add(self._generate_locked(self.db, series_id, target, cap))

        logger.info(
            "Generation up to %s: %d created, %d skipped across %d due series",
            target, result.created, result.skipped, len(due_ids),
        )
        return result

    # ------------------------------------------------------------------
    # Per-series processing
    # ------------------------------------------------------------------

    def _generate_parallel(self, due_ids: list[int], target: date, cap: int) -> GenerationResult:
        result = GenerationResult()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="generation") as pool:
            futures = [pool.submit(self._run_worker, series_id, target, cap) for series_id in due_ids]
            for future in as_completed(futures):
                result.add(future.result())
        return result

    def _run_worker(self, series_id: int, target: date, cap: int) -> GenerationResult:
        db = self.session_factory()
        try:
            return self._generate_locked(db, series_id, target, cap)
        finally:
            db.close()

    def _generate_locked(self, db: Session, series_id: int, target: date, cap: int) -> GenerationResult:
        with series_locks.hold(series_id):
            try:
                result = self._generate_series(db, series_id, target, cap)
                db.commit()
                return result
            except SQLAlchemyError:
                db.rollback()
                logger.exception("Generation failed for recurring series #%s", series_id)
                return GenerationResult(skipped=1)

    def _generate_series(self, db: Session, series_id: int, target: date, cap: int) -> GenerationResult:
        store = LedgerStore(db)
        result = GenerationResult()

        series = store.get_series(series_id, for_update=True)
        if series is None or not series.is_active:
            return result
        pointer = series.next_occurrence
        if pointer is None or pointer > target:
            # Changed between listing and locking
            return result

        spec = series_spec_from_db(series)
        window_end = target if spec.end_date is None else min(target, spec.end_date)

        current = pointer
        if not is_valid_occurrence(current, spec):
            healed = find_next_valid_occurrence(current, spec, self.max_iterations)
            if healed is None or healed > window_end:
                if healed is None:
                    healed = self._raw_pointer(current, spec)
                    if healed is not None:
                        # Search budget ran out inside the window
                        result.skipped += 1
                store.update_series(series, next_occurrence=healed)
                return result
            current = healed

        steps = 0
        while current is not None and current <= window_end:
            if steps >= cap:
                logger.warning(
                    "Catch-up cap of %d reached for recurring series #%s; stopped before %s",
                    cap, series.id, current,
                )
                break
            if self._materialize(db, store, series, current):
                result.created += 1
            else:
                result.skipped += 1
            steps += 1
            current = following_occurrence(current, spec, self.max_iterations)

        store.update_series(series, next_occurrence=current)
        return result

    def _materialize(self, db: Session, store: LedgerStore, series: RecurringSeriesModel, day: date) -> bool:
        """Create the generated entry for one occurrence. Returns False when skipped."""
        if store.find_entry(series.id, day, is_override=True) is not None:
            return False
        if store.find_entry(series.id, day) is not None:
            return False

        try:
            with db.begin_nested():
                store.create_entry(
                    account_id=series.account_id,
                    category_id=series.category_id,
                    amount=series.amount,
                    kind=series.kind,
                    description=series.description,
                    entry_date=day,
                    series_id=series.id,
                    is_override=False,
                )
        except (MissingReferenceError, SQLAlchemyError) as exc:
            logger.warning("Skipping occurrence: %s", GenerationFailure(series.id, day, str(exc)))
            return False
        return True

    @staticmethod
    def _raw_pointer(current: date, spec: SeriesSpec) -> date | None:
        """Calendar advance used when the bounded search gave up inside the window."""
        raw = next_occurrence(current, spec.frequency)
        if spec.end_date is not None and raw > spec.end_date:
            return None
        return raw
