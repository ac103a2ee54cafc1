"""
Ledger Store - the storage collaborator shared by generation, editing, deleting and the effective view

Methods only flush; committing is the caller's (use case's) job.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from recurring_ledger.domain.errors import MissingReferenceError
from recurring_ledger.infrastructure.db.models import (
    CategoryInfo,
    LedgerEntryModel,
    RecurringSeriesModel,
    User,
)


SERIES_FIELDS = (
    "account_id", "category_id", "amount", "kind", "description", "frequency",
    "start_date", "end_date", "next_occurrence", "is_active",
)
ENTRY_FIELDS = (
    "account_id", "category_id", "amount", "kind", "description", "entry_date",
    "series_id", "is_override",
)


class LedgerStore:
    """
    Repository over recurring_series and ledger_entries
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def ensure_references(self, account_id: int, category_id: int) -> None:
        """
        Check that owner and category still exist (and the category belongs to the owner)

        Raises:
            MissingReferenceError: the owner or the category is gone
        """
        owner = self.db.query(User.id).filter(User.id == account_id).first()
        if owner is None:
            raise MissingReferenceError(f"Owner #{account_id} not found")
        category = self.db.query(CategoryInfo.category_id).filter(
            CategoryInfo.category_id == category_id,
            CategoryInfo.account_id == account_id,
        ).first()
        if category is None:
            raise MissingReferenceError(f"Category #{category_id} not found")

    # ------------------------------------------------------------------
    # Recurring series
    # ------------------------------------------------------------------

    def get_series(self, series_id: int, for_update: bool = False) -> Optional[RecurringSeriesModel]:
        """
        Get a series by id

        Args:
            series_id: series id
            for_update: lock the row (SELECT ... FOR UPDATE) until the transaction ends

        Returns:
            RecurringSeriesModel or None
        """
        query = self.db.query(RecurringSeriesModel).filter(RecurringSeriesModel.id == series_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def find_series(
        self,
        account_id: Optional[int] = None,
        is_active: Optional[bool] = None,
        order_by=None,
    ) -> List[RecurringSeriesModel]:
        """
        List series matching the filter (default ordering: id ASC)
        """
        query = self.db.query(RecurringSeriesModel)
        if account_id is not None:
            query = query.filter(RecurringSeriesModel.account_id == account_id)
        if is_active is not None:
            query = query.filter(RecurringSeriesModel.is_active == is_active)
        if order_by is None:
            order_by = RecurringSeriesModel.id.asc()
        return query.order_by(order_by).all()

    def find_first_series(self, **filters) -> Optional[RecurringSeriesModel]:
        query = self.db.query(RecurringSeriesModel)
        for name, value in filters.items():
            query = query.filter(getattr(RecurringSeriesModel, name) == value)
        return query.order_by(RecurringSeriesModel.id.asc()).first()

    def list_due_series(self, target_date: date) -> List[RecurringSeriesModel]:
        """
        Active series whose pointer is on or before target_date

        Example:
            >>> store.list_due_series(date(2026, 1, 20))
            [<RecurringSeriesModel 1>, <RecurringSeriesModel 4>]
        """
        return (
            self.db.query(RecurringSeriesModel)
            .filter(
                RecurringSeriesModel.is_active == True,  # noqa: E712
                RecurringSeriesModel.next_occurrence != None,  # noqa: E711
                RecurringSeriesModel.next_occurrence <= target_date,
                RecurringSeriesModel.start_date <= target_date,
            )
            .order_by(RecurringSeriesModel.next_occurrence.asc(), RecurringSeriesModel.id.asc())
            .all()
        )

    def create_series(self, **fields) -> RecurringSeriesModel:
        series = RecurringSeriesModel(**self._pick(fields, SERIES_FIELDS))
        self.db.add(series)
        self.db.flush()
        return series

    def update_series(self, series: RecurringSeriesModel, **changes) -> RecurringSeriesModel:
        for key, value in self._pick(changes, SERIES_FIELDS).items():
            setattr(series, key, value)
        self.db.flush()
        return series

    def delete_series(self, series: RecurringSeriesModel) -> None:
        self.db.delete(series)
        self.db.flush()

    # ------------------------------------------------------------------
    # Ledger entries
    # ------------------------------------------------------------------

    def get_entry(self, entry_id: int) -> Optional[LedgerEntryModel]:
        return self.db.query(LedgerEntryModel).filter(LedgerEntryModel.id == entry_id).first()

    def find_entries(
        self,
        account_id: Optional[int] = None,
        series_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[LedgerEntryModel]:
        """
        List entries (date DESC, id DESC)

        Args:
            account_id: owner filter
            series_id: back-reference filter
            start_date / end_date: inclusive date range, either side optional
        """
        query = self.db.query(LedgerEntryModel)
        if account_id is not None:
            query = query.filter(LedgerEntryModel.account_id == account_id)
        if series_id is not None:
            query = query.filter(LedgerEntryModel.series_id == series_id)
        if start_date is not None:
            query = query.filter(LedgerEntryModel.entry_date >= start_date)
        if end_date is not None:
            query = query.filter(LedgerEntryModel.entry_date <= end_date)
        return query.order_by(LedgerEntryModel.entry_date.desc(), LedgerEntryModel.id.desc()).all()

    def find_entry(
        self,
        series_id: int,
        entry_date: date,
        is_override: Optional[bool] = None,
    ) -> Optional[LedgerEntryModel]:
        """
        Dedup lookup: the entry for (series, date), optionally restricted to overrides / generated
        """
        query = self.db.query(LedgerEntryModel).filter(
            LedgerEntryModel.series_id == series_id,
            LedgerEntryModel.entry_date == entry_date,
        )
        if is_override is not None:
            query = query.filter(LedgerEntryModel.is_override == is_override)
        return query.first()

    def create_entry(self, **fields) -> LedgerEntryModel:
        """
        Create an entry after re-checking its references

        Raises:
            MissingReferenceError: owner or category vanished
            IntegrityError: (series_id, entry_date) already taken
        """
        data = self._pick(fields, ENTRY_FIELDS)
        self.ensure_references(data["account_id"], data["category_id"])
        data["amount"] = Decimal(data["amount"])
        entry = LedgerEntryModel(**data)
        self.db.add(entry)
        self.db.flush()
        return entry

    def update_entry(self, entry: LedgerEntryModel, **changes) -> LedgerEntryModel:
        for key, value in self._pick(changes, ENTRY_FIELDS).items():
            setattr(entry, key, value)
        self.db.flush()
        return entry

    def delete_entry(self, entry: LedgerEntryModel) -> None:
        self.db.delete(entry)
        self.db.flush()

    def detach_entries(self, series_id: int) -> int:
        """
        Clear the weak back-reference of every entry of a series

        Returns:
            number of detached entries
        """
        count = (
            self.db.query(LedgerEntryModel)
            .filter(LedgerEntryModel.series_id == series_id)
            .update({LedgerEntryModel.series_id: None}, synchronize_session="fetch")
        )
        self.db.flush()
        return count

    @staticmethod
    def _pick(fields: Dict[str, Any], allowed) -> Dict[str, Any]:
        unknown = set(fields) - set(allowed)
        if unknown:
            raise TypeError(f"unknown fields: {', '.join(sorted(unknown))}")
        return dict(fields)
