"""
Tests for the occurrence policy (pure calendar logic)
"""
import pytest
from datetime import date

from recurring_ledger.domain.recurrence import (
    SeriesSpec,
    add_months,
    advance_occurrence,
    find_next_valid_occurrence,
    following_occurrence,
    is_valid_occurrence,
    iter_occurrences,
    next_occurrence,
)


def spec(frequency, start, end=None):
    return SeriesSpec(frequency=frequency, start_date=start, end_date=end)


class TestNextOccurrence:
    def test_daily_and_weekly(self):
        assert next_occurrence(date(2026, 12, 31), "daily") == date(2027, 1, 1)
        assert next_occurrence(date(2026, 1, 5), "weekly") == date(2026, 1, 12)

    def test_monthly_clamps_to_month_end(self):
        assert next_occurrence(date(2026, 1, 31), "monthly") == date(2026, 2, 28)
        assert next_occurrence(date(2024, 1, 31), "monthly") == date(2024, 2, 29)
        assert next_occurrence(date(2026, 12, 15), "monthly") == date(2027, 1, 15)

    def test_yearly_from_leap_day(self):
        assert next_occurrence(date(2024, 2, 29), "yearly") == date(2025, 2, 28)

    def test_unknown_frequency(self):
        with pytest.raises(ValueError):
            next_occurrence(date(2026, 1, 1), "hourly")

    def test_add_months_across_year(self):
        assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)


class TestIsValidOccurrence:
    def test_outside_window(self):
        s = spec("daily", date(2026, 1, 10), date(2026, 1, 20))
        assert not is_valid_occurrence(date(2026, 1, 9), s)
        assert is_valid_occurrence(date(2026, 1, 10), s)
        assert is_valid_occurrence(date(2026, 1, 20), s)
        assert not is_valid_occurrence(date(2026, 1, 21), s)

    def test_weekly_same_weekday(self):
        s = spec("weekly", date(2026, 1, 5))  # Monday
        assert is_valid_occurrence(date(2026, 1, 12), s)
        assert is_valid_occurrence(date(2026, 3, 2), s)
        assert not is_valid_occurrence(date(2026, 1, 13), s)

    def test_monthly_day_31(self):
        s = spec("monthly", date(2026, 1, 31))
        assert is_valid_occurrence(date(2026, 2, 28), s)
        assert not is_valid_occurrence(date(2026, 2, 27), s)
        assert is_valid_occurrence(date(2026, 3, 31), s)
        assert not is_valid_occurrence(date(2026, 3, 30), s)
        assert is_valid_occurrence(date(2026, 4, 30), s)

    def test_monthly_regular_day(self):
        s = spec("monthly", date(2026, 1, 15))
        assert is_valid_occurrence(date(2026, 2, 15), s)
        assert not is_valid_occurrence(date(2026, 2, 28), s)

    def test_yearly_leap_day(self):
        s = spec("yearly", date(2024, 2, 29))
        assert is_valid_occurrence(date(2025, 2, 28), s)
        assert is_valid_occurrence(date(2028, 2, 29), s)
        assert not is_valid_occurrence(date(2028, 2, 28), s)
        assert not is_valid_occurrence(date(2025, 3, 1), s)

    def test_unknown_frequency_is_never_valid(self):
        assert not is_valid_occurrence(date(2026, 1, 1), spec("hourly", date(2026, 1, 1)))


class TestAdvanceOccurrence:
    def test_monthly_returns_to_start_day(self):
        s = spec("monthly", date(2026, 1, 31))
        assert advance_occurrence(date(2026, 1, 31), s) == date(2026, 2, 28)
        assert advance_occurrence(date(2026, 2, 28), s) == date(2026, 3, 31)

    def test_before_start_jumps_to_start(self):
        s = spec("weekly", date(2026, 1, 5))
        assert advance_occurrence(date(2025, 12, 1), s) == date(2026, 1, 5)

    def test_off_grid_snaps_forward(self):
        s = spec("weekly", date(2026, 1, 5))
        assert advance_occurrence(date(2026, 1, 7), s) == date(2026, 1, 12)
        s = spec("yearly", date(2024, 2, 29))
        assert advance_occurrence(date(2025, 1, 1), s) == date(2025, 2, 28)


class TestFindNextValidOccurrence:
    def test_valid_date_is_returned_as_is(self):
        s = spec("monthly", date(2026, 1, 15))
        assert find_next_valid_occurrence(date(2026, 3, 15), s) == date(2026, 3, 15)

    def test_clamped_to_start(self):
        s = spec("monthly", date(2026, 1, 15))
        assert find_next_valid_occurrence(date(2025, 6, 1), s) == date(2026, 1, 15)

    def test_none_past_end(self):
        s = spec("monthly", date(2026, 1, 15), date(2026, 3, 1))
        assert find_next_valid_occurrence(date(2026, 2, 16), s) is None

    def test_search_budget_exhausted_is_silent(self):
        s = spec("monthly", date(2026, 1, 31))
        assert find_next_valid_occurrence(date(2026, 2, 1), s, max_iterations=1) is None
        assert find_next_valid_occurrence(date(2026, 2, 1), s, max_iterations=2) == date(2026, 2, 28)

    def test_following_occurrence_is_strictly_after(self):
        s = spec("weekly", date(2026, 1, 5))
        assert following_occurrence(date(2026, 1, 5), s) == date(2026, 1, 12)
        s = spec("weekly", date(2026, 1, 5), date(2026, 1, 11))
        assert following_occurrence(date(2026, 1, 5), s) is None


class TestIterOccurrences:
    def test_monthly_31_through_short_months(self):
        s = spec("monthly", date(2026, 1, 31))
        assert list(iter_occurrences(s, date(2026, 1, 1), date(2026, 5, 1))) == [
            date(2026, 1, 31),
            date(2026, 2, 28),
            date(2026, 3, 31),
            date(2026, 4, 30),
        ]

    def test_yearly_leap_day_over_a_leap_cycle(self):
        s = spec("yearly", date(2024, 2, 29))
        assert list(iter_occurrences(s, date(2024, 1, 1), date(2028, 12, 31))) == [
            date(2024, 2, 29),
            date(2025, 2, 28),
            date(2026, 2, 28),
            date(2027, 2, 28),
            date(2028, 2, 29),
        ]

    def test_empty_window(self):
        s = spec("daily", date(2026, 1, 1))
        assert list(iter_occurrences(s, date(2026, 1, 5), date(2026, 1, 4))) == []

    def test_respects_end_date(self):
        s = spec("daily", date(2026, 1, 1), date(2026, 1, 3))
        assert list(iter_occurrences(s, date(2025, 12, 1), date(2026, 2, 1))) == [
            date(2026, 1, 1), date(2026, 1, 2), date(2026, 1, 3),
        ]

    @pytest.mark.parametrize("start_day", [1, 15, 28, 29, 30, 31])
    def test_monthly_one_valid_date_per_month(self, start_day):
        s = spec("monthly", date(2024, 1, start_day))
        dates = list(iter_occurrences(s, date(2024, 1, 1), date(2025, 12, 31)))
        assert len(dates) == 24
        assert len({(d.year, d.month) for d in dates}) == 24
        assert all(is_valid_occurrence(d, s) for d in dates)
