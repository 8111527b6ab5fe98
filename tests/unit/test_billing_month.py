"""Tests for the calendar month value."""

from datetime import date

import pytest

from src.models.billing_month import BillingMonth, iter_months, months_between


class TestBillingMonth:
    def test_parse_and_format(self):
        assert BillingMonth.parse("2025-03") == BillingMonth(2025, 3)
        assert BillingMonth.parse("2025-03-31") == BillingMonth(2025, 3)
        assert str(BillingMonth(2025, 3)) == "2025-03"

    @pytest.mark.parametrize("value", ["2025", "2025-13", "2025-00", "March"])
    def test_parse_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            BillingMonth.parse(value)

    def test_month_bounds(self):
        month = BillingMonth(2024, 2)

        assert month.first_day == date(2024, 2, 1)
        assert month.last_day == date(2024, 2, 29)
        assert month.contains(date(2024, 2, 29))
        assert not month.contains(date(2024, 3, 1))

    def test_shift_across_year(self):
        assert BillingMonth(2025, 11).shift(3) == BillingMonth(2026, 2)
        assert BillingMonth(2025, 1).shift(-1) == BillingMonth(2024, 12)

    def test_ordering_follows_calendar(self):
        assert BillingMonth(2024, 12) < BillingMonth(2025, 1) < BillingMonth(2025, 2)

    def test_iter_months_inclusive(self):
        months = list(iter_months(date(2025, 11, 30), date(2026, 2, 1)))

        assert months == [
            BillingMonth(2025, 11),
            BillingMonth(2025, 12),
            BillingMonth(2026, 1),
            BillingMonth(2026, 2),
        ]

    def test_months_between(self):
        assert months_between(date(2028, 1, 15), date(2025, 1, 15)) == 36
        assert months_between(date(2028, 1, 14), date(2025, 1, 15)) == 35
