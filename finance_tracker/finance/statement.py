"""
Credit Statement Calculator

Computes one billing cycle of a revolving credit line from the balance
carried in, the charges and payments dated inside the cycle, and the
annual effective rate.

Interest uses the average-daily-balance method: the period is walked
segment by segment between consecutive event dates and every segment
accrues `daily_rate * balance * days`. The running balance starts at
the previous statement balance, goes down with each payment and up
with each charge; `interest_on_balance` accrues on all of it while it
is positive.

Alongside, the walk tracks the part of the balance made of this
cycle's new purchases. Interest on that part is reported as
`bonifiable_interest`: it is waived when the statement is paid in full
by its due date, so it only shows up in the installment balance; when
the statement is not paid in full it comes back as carry-over interest
on the next cycle.

Payments reduce the carried-in part first and then new purchases. On
the same date payments are applied before charges.

Everything here is pure; the accrual service does the I/O.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from finance_tracker.finance.dates import DAYS_PER_YEAR, normalize_annual_rate
from finance_tracker.finance.money import to_money
from finance_tracker.models.debt import (
    CreditHistoryRecord,
    EntryType,
    Expense,
    StatementEvent,
    StatementFigures,
)

ZERO = Decimal("0")


def sort_events(events: Iterable[StatementEvent]) -> list[StatementEvent]:
    """Sort by (date, kind) with payments before charges."""
    return sorted(events, key=lambda e: e.sort_key)


def build_events(
    expenses: Iterable[Expense],
    debt_id: str,
    period_start: date,
    period_end: date,
) -> list[StatementEvent]:
    """
    Select the statement events of one debt inside [period_start, period_end).

    Expenses for other debts, with a non-positive amount, or with an
    entry type other than charge/payment are dropped.
    """
    events = []
    for expense in expenses:
        if expense.debt_id is None or str(expense.debt_id) != str(debt_id):
            continue
        if not period_start <= expense.date < period_end:
            continue
        if expense.amount <= 0 or expense.kind is None:
            continue
        events.append(
            StatementEvent(date=expense.date, kind=expense.kind, amount=expense.amount)
        )
    return sort_events(events)


def sum_charges(events: Iterable[StatementEvent]) -> Decimal:
    return sum((e.amount for e in events if e.kind == EntryType.CHARGE), ZERO)


def sum_payments(events: Iterable[StatementEvent]) -> Decimal:
    return sum((e.amount for e in events if e.kind == EntryType.PAYMENT), ZERO)


def compute_spd_interests(
    previous_balance: Decimal,
    events: Sequence[StatementEvent],
    annual_rate_unit: Decimal,
    period_start: date,
    period_end: date,
) -> tuple[Decimal, Decimal]:
    """
    Walk the period and accrue daily interest on the running balance.

    Args:
        previous_balance: Balance carried in from the previous statement
        events: Charges and payments with period_start <= date < period_end
        annual_rate_unit: Annual effective rate (unit fraction or percentage)
        period_start: First day of the cycle (inclusive)
        period_end: Statement date (exclusive)

    Returns:
        (interest_on_balance, bonifiable_interest), unrounded

    Raises:
        ValueError: If an event falls outside the period
    """
    rate = normalize_annual_rate(annual_rate_unit) / DAYS_PER_YEAR
    balance = Decimal(previous_balance)
    carried = max(ZERO, balance)
    balance_days = ZERO
    purchase_days = ZERO
    cursor = period_start

    for event in sort_events(events):
        if not period_start <= event.date < period_end:
            raise ValueError(
                f"Event dated {event.date} is outside the period "
                f"[{period_start}, {period_end})"
            )
        days = (event.date - cursor).days
        if days > 0:
            balance_days += max(ZERO, balance) * days
            purchase_days += max(ZERO, balance - carried) * days
            cursor = event.date

        if event.kind == EntryType.PAYMENT:
            balance -= event.amount
            carried = max(ZERO, carried - event.amount)
        else:
            balance += event.amount

    days = (period_end - cursor).days
    if days > 0:
        balance_days += max(ZERO, balance) * days
        purchase_days += max(ZERO, balance - carried) * days

    return rate * balance_days, rate * purchase_days


def compute_interest_carry_over(
    previous_record: Optional[CreditHistoryRecord],
    paid_against_previous: Decimal,
) -> Decimal:
    """
    Interest from the previous cycle that rolls into this one.

    When the previous statement was paid in full (or nothing was owed)
    the grace period holds and nothing carries over. Otherwise the
    previous cycle's bonifiable interest is no longer waived and is
    charged now.
    """
    if previous_record is None:
        return ZERO
    owed = previous_record.statement_balance
    if owed <= 0 or Decimal(paid_against_previous) >= owed:
        return ZERO
    return max(ZERO, previous_record.bonifiable_interest)


def calculate_statement(
    previous_balance: Decimal,
    events: Sequence[StatementEvent],
    annual_rate_unit: Decimal,
    period_start: date,
    period_end: date,
    previous_record: Optional[CreditHistoryRecord] = None,
    paid_against_previous: Decimal = ZERO,
) -> StatementFigures:
    """Compute every figure of one statement, rounded to cents."""
    charges = sum_charges(events)
    payments = sum_payments(events)
    interest_on_balance, bonifiable = compute_spd_interests(
        previous_balance, events, annual_rate_unit, period_start, period_end
    )
    carry_over = compute_interest_carry_over(previous_record, paid_against_previous)

    interests = to_money(interest_on_balance + carry_over)
    bonifiable_interest = to_money(bonifiable)
    statement_balance = to_money(
        max(ZERO, Decimal(previous_balance) + charges + interests - payments)
    )

    return StatementFigures(
        previous_balance=to_money(previous_balance),
        charges=to_money(charges),
        payments=to_money(payments),
        interest_on_balance=to_money(interest_on_balance),
        bonifiable_interest=bonifiable_interest,
        interest_carry_over=to_money(carry_over),
        interests=interests,
        statement_balance=statement_balance,
        installment_balance=statement_balance + bonifiable_interest,
    )
