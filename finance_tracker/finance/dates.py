"""
Date and Rate Utilities

Pure helpers used by the statement calculator and the accrual service.
All arithmetic is on `datetime.date` objects, so there is no time
component and no timezone drift between a charge date and a cutoff date.
"""

import calendar
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from finance_tracker.exceptions import BadRequestError


RateLike = Union[Decimal, float, int, str, None]

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")
_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

DAYS_PER_YEAR = Decimal("365")
MONTHS_PER_YEAR = Decimal("12")


def last_day_of_month(year: int, month: int) -> date:
    """Last calendar day of the given month."""
    return date(year, month, calendar.monthrange(year, month)[1])


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """
    Map a configured day-of-month onto a month that may be shorter.

    Returns an integer in [1, days_in_month]; a cutoff day of 31 in
    February becomes 28 (or 29).
    """
    days_in_month = calendar.monthrange(year, month)[1]
    return min(max(1, day), days_in_month)


def day_in_month(year: int, month: int, day: int) -> date:
    """Date for `day` in the given month, clamped to the month length."""
    return date(year, month, clamp_day_to_month(year, month, day))


def add_months(value: date, months: int) -> date:
    """Shift a date by whole months, clamping the day when needed."""
    return value + relativedelta(months=months)


def next_occurrence_of_day(day: int, from_date: date) -> date:
    """
    First date on or after `from_date` whose day-of-month is `day`.

    The day is clamped per month, so day 31 resolves to the last day
    of months that are shorter.
    """
    candidate = day_in_month(from_date.year, from_date.month, day)
    if candidate >= from_date:
        return candidate
    following = add_months(date(from_date.year, from_date.month, 1), 1)
    return day_in_month(following.year, following.month, day)


def days_between(start: date, end: date) -> int:
    """Whole days from `start` to `end` (negative when `end` is earlier)."""
    return (end - start).days


def to_decimal(value: RateLike) -> Decimal:
    """Coerce a sheet cell or request value to Decimal; blanks become 0."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    text = str(value).strip()
    if not text:
        return Decimal("0")
    try:
        return Decimal(text)
    except InvalidOperation as e:
        raise BadRequestError(f"Invalid numeric value: {value!r}") from e


def normalize_annual_rate(rate: RateLike) -> Decimal:
    """
    Normalize an annual effective rate to a unit fraction.

    Callers may supply either form: values above 1 are read as a
    percentage (18 -> 0.18), anything else is already a fraction.
    A rate of exactly 1 is read as 100% expressed as a fraction.
    """
    value = to_decimal(rate)
    if value > 1:
        return value / Decimal("100")
    return value


def monthly_rate_from_annual_effective(rate: RateLike) -> Decimal:
    """
    Monthly rate as annual / 12.

    This is a simple decomposition, not the compound-exact
    (1 + r) ** (1 / 12) - 1 conversion.
    """
    return normalize_annual_rate(rate) / MONTHS_PER_YEAR


def daily_rate(rate: RateLike) -> Decimal:
    """Daily rate as annual / 365."""
    return normalize_annual_rate(rate) / DAYS_PER_YEAR


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD value into a date.

    Anything after the day component (a time, a timezone) is ignored.

    Raises:
        BadRequestError: If the value is not a valid calendar date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    match = _DATE_RE.match(text)
    if not match:
        raise BadRequestError(f"Invalid date format: {value!r}. Expected YYYY-MM-DD")
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError as e:
        raise BadRequestError(f"Invalid date: {value!r}") from e


def parse_period(value: str) -> tuple[int, int]:
    """
    Parse a YYYY-MM period into (year, month).

    Raises:
        BadRequestError: If the period is malformed or the month is out of range
    """
    match = _PERIOD_RE.match(str(value).strip())
    if not match:
        raise BadRequestError("Invalid period format. Expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise BadRequestError("Invalid period format. Expected YYYY-MM")
    return year, month
