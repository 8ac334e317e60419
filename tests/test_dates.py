"""Tests for date, rate and money helpers"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from finance_tracker.exceptions import BadRequestError
from finance_tracker.finance.dates import (
    add_months,
    clamp_day_to_month,
    daily_rate,
    day_in_month,
    days_between,
    last_day_of_month,
    monthly_rate_from_annual_effective,
    next_occurrence_of_day,
    normalize_annual_rate,
    parse_date,
    parse_period,
    to_decimal,
)
from finance_tracker.finance.money import format_fields, format_money, to_money


class TestCalendarHelpers:
    """Tests for month-length aware date arithmetic."""

    def test_last_day_of_month(self):
        assert last_day_of_month(2025, 2) == date(2025, 2, 28)
        assert last_day_of_month(2024, 2) == date(2024, 2, 29)
        assert last_day_of_month(2025, 12) == date(2025, 12, 31)

    def test_clamp_day_to_month(self):
        assert clamp_day_to_month(2025, 2, 31) == 28
        assert clamp_day_to_month(2025, 4, 31) == 30
        assert clamp_day_to_month(2025, 3, 15) == 15
        assert clamp_day_to_month(2025, 3, 0) == 1

    def test_day_in_month(self):
        assert day_in_month(2024, 2, 30) == date(2024, 2, 29)

    def test_add_months_clamps(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2025, 3, 15), -3) == date(2024, 12, 15)

    def test_next_occurrence_same_month(self):
        assert next_occurrence_of_day(25, date(2025, 3, 10)) == date(2025, 3, 25)

    def test_next_occurrence_is_inclusive(self):
        assert next_occurrence_of_day(15, date(2025, 3, 15)) == date(2025, 3, 15)

    def test_next_occurrence_rolls_to_next_month(self):
        assert next_occurrence_of_day(5, date(2025, 3, 15)) == date(2025, 4, 5)
        assert next_occurrence_of_day(31, date(2025, 1, 31)) == date(2025, 1, 31)
        assert next_occurrence_of_day(30, date(2025, 1, 31)) == date(2025, 2, 28)

    def test_days_between(self):
        assert days_between(date(2025, 2, 16), date(2025, 3, 16)) == 28
        assert days_between(date(2025, 3, 16), date(2025, 2, 16)) == -28


class TestRates:
    """Tests for annual rate normalization and decomposition."""

    def test_percentage_is_normalized(self):
        assert normalize_annual_rate(Decimal("36")) == Decimal("0.36")
        assert normalize_annual_rate("24.5") == Decimal("0.245")

    def test_fraction_is_kept(self):
        assert normalize_annual_rate(Decimal("0.36")) == Decimal("0.36")
        assert normalize_annual_rate(1) == Decimal("1")

    def test_blank_rate_is_zero(self):
        assert normalize_annual_rate(None) == Decimal("0")
        assert normalize_annual_rate("") == Decimal("0")

    def test_monthly_rate(self):
        assert monthly_rate_from_annual_effective(Decimal("0.24")) == Decimal("0.02")
        assert monthly_rate_from_annual_effective(Decimal("24")) == Decimal("0.02")

    def test_daily_rate(self):
        assert daily_rate(Decimal("0.365")) == Decimal("0.001")

    def test_invalid_number(self):
        with pytest.raises(BadRequestError):
            to_decimal("abc")


class TestParsing:
    """Tests for request date and period parsing."""

    def test_parse_date(self):
        assert parse_date("2025-03-15") == date(2025, 3, 15)
        assert parse_date("2025-03-15T10:30:00Z") == date(2025, 3, 15)
        assert parse_date(datetime(2025, 3, 15, 8)) == date(2025, 3, 15)
        assert parse_date(None) is None
        assert parse_date("  ") is None

    def test_parse_date_invalid(self):
        with pytest.raises(BadRequestError, match="Invalid date format"):
            parse_date("15/03/2025")
        with pytest.raises(BadRequestError, match="Invalid date"):
            parse_date("2025-02-30")

    def test_parse_period(self):
        assert parse_period("2025-03") == (2025, 3)

    @pytest.mark.parametrize("value", ["2025-13", "2025-3", "202503", "March", "2025-00"])
    def test_parse_period_invalid(self, value):
        with pytest.raises(BadRequestError, match="Invalid period format. Expected YYYY-MM"):
            parse_period(value)


class TestMoney:
    """Tests for cent rounding and formatting."""

    def test_to_money_rounds_half_up(self):
        assert to_money(Decimal("2.345")) == Decimal("2.35")
        assert to_money(Decimal("2.344")) == Decimal("2.34")
        assert to_money("10") == Decimal("10.00")

    def test_format_money(self):
        assert format_money(Decimal("123.4")) == "123.40"
        assert format_money(0) == "0.00"

    def test_format_fields_skips_missing(self):
        data = {"balance": Decimal("5"), "credit_limit": None, "active": True, "name": "Visa"}
        formatted = format_fields(data, ("balance", "credit_limit", "active", "absent"))
        assert formatted == {
            "balance": "5.00",
            "credit_limit": None,
            "active": True,
            "name": "Visa",
        }
