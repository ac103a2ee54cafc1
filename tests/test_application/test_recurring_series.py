"""
Tests for creating and listing recurring series
"""
import pytest
from datetime import date
from decimal import Decimal

from recurring_ledger.application.recurring_series import (
    CreateRecurringSeriesUseCase,
    get_series,
    list_due_series,
    list_series,
)
from recurring_ledger.domain.errors import MissingReferenceError, SeriesNotFoundError, SeriesValidationError


def create(db, account_id, category_id, **overrides):
    fields = dict(
        account_id=account_id, category_id=category_id, amount="1200,50",
        kind="expense", frequency="monthly", start_date="2026-01-31",
    )
    fields.update(overrides)
    return CreateRecurringSeriesUseCase(db).execute(**fields)


class TestCreateSeries:
    def test_pointer_starts_at_start_date(self, db_session, sample_account_id, category):
        series = create(db_session, sample_account_id, category.category_id, description="Rent")

        assert series.id is not None
        assert series.amount == Decimal("1200.50")
        assert series.start_date == date(2026, 1, 31)
        assert series.end_date is None
        assert series.next_occurrence == date(2026, 1, 31)
        assert series.is_active is True

    def test_with_end_date(self, db_session, sample_account_id, category):
        series = create(db_session, sample_account_id, category.category_id, end_date="2026-12-31")

        assert series.end_date == date(2026, 12, 31)

    @pytest.mark.parametrize("overrides, message", [
        ({"kind": "transfer"}, "Invalid entry kind"),
        ({"frequency": "MONTHLY"}, "Invalid frequency"),
        ({"amount": "0"}, "greater than zero"),
        ({"start_date": "2026-02-30"}, "start_date"),
        ({"end_date": "2025-12-31"}, "End date cannot be before"),
    ])
    def test_validation(self, db_session, sample_account_id, category, overrides, message):
        with pytest.raises(SeriesValidationError, match=message):
            create(db_session, sample_account_id, category.category_id, **overrides)

    def test_unknown_category(self, db_session, sample_account_id, category):
        with pytest.raises(MissingReferenceError, match="Category #999 not found"):
            create(db_session, sample_account_id, 999)

    def test_category_of_another_owner(self, db_session, category):
        with pytest.raises(MissingReferenceError, match="Owner #2 not found"):
            create(db_session, 2, category.category_id)


class TestReadSeries:
    def test_get_series(self, db_session, make_series):
        series = make_series()
        assert get_series(db_session, series.id) is series

    def test_get_missing_series(self, db_session):
        with pytest.raises(SeriesNotFoundError, match="Recurring series #5 not found"):
            get_series(db_session, 5)

    def test_list_filters_by_state(self, db_session, make_series, sample_account_id):
        active = make_series()
        inactive = make_series(is_active=False)

        assert list_series(db_session, sample_account_id) == [active, inactive]
        assert list_series(db_session, sample_account_id, is_active=False) == [inactive]

    def test_due_series(self, db_session, make_series):
        due = make_series(start_date=date(2026, 1, 1))
        make_series(start_date=date(2026, 3, 1))
        make_series(next_occurrence=None)

        assert list_due_series(db_session, date(2026, 2, 1)) == [due]
