"""
Debt Summaries and Installment Plans

Read-only views over a debt: how much credit is left, what the
balance costs per month, and what paying it off over N months looks
like.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from finance_tracker.finance.dates import (
    add_months,
    day_in_month,
    monthly_rate_from_annual_effective,
    next_occurrence_of_day,
)
from finance_tracker.finance.money import format_money, to_money
from finance_tracker.models.debt import Debt

ZERO = Decimal("0")


def interest_for_month(balance: Decimal, monthly_rate: Decimal) -> Decimal:
    """One month of simple interest on a non-negative balance."""
    return max(ZERO, balance) * monthly_rate


def build_debt_summary(debt: Debt, today: date) -> dict[str, Any]:
    """
    Summarize a debt's position as of `today`.

    Currency figures are two-decimal strings; rates are unit fractions.
    """
    monthly_rate = monthly_rate_from_annual_effective(debt.annual_effective_rate)
    balance = debt.balance

    available: Optional[Decimal] = None
    utilization: Optional[Decimal] = None
    if debt.credit_limit is not None:
        available = max(ZERO, debt.credit_limit - balance)
        if debt.credit_limit > 0:
            utilization = (balance / debt.credit_limit * 100).quantize(Decimal("0.01"))

    next_cut_off = (
        next_occurrence_of_day(debt.cut_off_day, today) if debt.cut_off_day else None
    )
    next_due = next_occurrence_of_day(debt.due_day, today) if debt.due_day else None

    return {
        "balance": format_money(balance),
        "credit_limit": format_money(debt.credit_limit) if debt.credit_limit is not None else None,
        "available_credit": format_money(available) if available is not None else None,
        "utilization_percent": str(utilization) if utilization is not None else None,
        "annual_effective_rate": str(debt.annual_rate_unit),
        "monthly_rate": str(monthly_rate),
        "estimated_monthly_interest": format_money(interest_for_month(balance, monthly_rate)),
        "next_cut_off_date": next_cut_off.isoformat() if next_cut_off else None,
        "next_due_date": next_due.isoformat() if next_due else None,
        "active": debt.active,
    }


def level_payment(principal: Decimal, monthly_rate: Decimal, months: int) -> Decimal:
    """
    Fixed monthly payment that amortizes `principal` over `months`.

    Falls back to an equal split when the rate is zero.
    """
    if months <= 0:
        raise ValueError("months must be positive")
    if monthly_rate <= 0:
        return principal / months
    growth = (1 + monthly_rate) ** months
    return principal * monthly_rate * growth / (growth - 1)


def build_installment_plan(
    debt: Debt,
    months: int,
    start: date,
) -> dict[str, Any]:
    """
    Amortization schedule for paying off the current balance.

    Payment dates fall on `start`'s day of month in each following
    month, clamped to the month length. The schedule stops early once
    the balance reaches zero.
    """
    monthly_rate = monthly_rate_from_annual_effective(debt.annual_effective_rate)
    principal = max(ZERO, debt.balance)
    payment = level_payment(principal, monthly_rate, months)

    schedule = []
    remaining = principal
    total_paid = total_interest = total_principal = ZERO
    for period in range(1, months + 1):
        month_start = add_months(date(start.year, start.month, 1), period - 1)
        due = day_in_month(month_start.year, month_start.month, start.day)

        interest = interest_for_month(remaining, monthly_rate)
        principal_part = min(max(ZERO, payment - interest), remaining)
        remaining = max(ZERO, remaining - principal_part)

        schedule.append({
            "period": period,
            "date": due.isoformat(),
            "payment": format_money(payment),
            "interest": format_money(interest),
            "principal": format_money(principal_part),
            "remaining_balance": format_money(remaining),
        })
        total_paid += to_money(payment)
        total_interest += to_money(interest)
        total_principal += to_money(principal_part)
        if remaining <= 0:
            break

    return {
        "debt": {
            "id": debt.id,
            "name": debt.name,
            "issuer": debt.issuer,
            "balance": format_money(principal),
            "annual_effective_rate": str(debt.annual_rate_unit),
        },
        "monthly_rate": str(monthly_rate),
        "payment": format_money(payment),
        "months": len(schedule),
        "schedule": schedule,
        "totals": {
            "total_paid": format_money(total_paid),
            "total_interest": format_money(total_interest),
            "total_principal": format_money(total_principal),
        },
    }
