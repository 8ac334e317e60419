"""
Accrual Service

Closes one billing cycle of one debt: resolves the statement dates,
checks the ledger for an existing record, gathers the cycle's charges
and payments, runs the statement calculator and writes the result.

The flow for a single accrual:
1. Load the debt (NotFoundError if absent, skipped if inactive)
2. Resolve statement, due and previous statement dates
3. Skip if a record already exists for (debt, statement date),
   unless this is a recompute
4. Compute the statement from the previous record and the cycle's events
5. Append the record (or overwrite it in place on recompute)
6. Store the debt's running balance: statement balance plus movements
   dated after the statement up to today

Nothing is written until every figure has been computed. Accruals for
the same debt are serialized through a per-debt lock held from the
idempotency check until the balance is written.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, AsyncIterator, Iterable, Optional, Union

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings
from finance_tracker.exceptions import NotFoundError
from finance_tracker.finance.dates import (
    add_months,
    day_in_month,
    last_day_of_month,
    next_occurrence_of_day,
    parse_date,
    parse_period,
)
from finance_tracker.finance.money import format_fields, format_money, to_money
from finance_tracker.finance.statement import build_events, calculate_statement
from finance_tracker.models.debt import (
    AccrualResult,
    CreditHistoryRecord,
    Debt,
    DebtUpdate,
    EntryType,
    Expense,
    IdempotencyInfo,
    IdempotencyStatus,
    StatementEvent,
    StatementFigures,
    StatementPreview,
    StatementWindow,
)
from finance_tracker.services.storage import LedgerStorageInterface


logger = structlog.get_logger(__name__)

DateLike = Union[str, date, None]

ZERO = Decimal("0")

MONEY_FIELDS = (
    "previous_balance",
    "charges",
    "interests",
    "payments",
    "statement_balance",
    "bonifiable_interest",
    "installment_balance",
    "payment_made",
)
BREAKDOWN_FIELDS = ("interest_on_balance", "bonifiable_interest", "interest_carry_over")

ALREADY_ACCRUED = "Already accrued for this statement date"
DEBT_INACTIVE = "Debt is inactive"


def _today() -> date:
    return date.today()


def format_record(
    record: CreditHistoryRecord,
    figures: Optional[StatementFigures] = None,
) -> dict[str, Any]:
    """Render a statement record for a response, currency as two-decimal strings."""
    data = format_fields(record.model_dump(), MONEY_FIELDS)
    data["statement_date"] = record.statement_date.isoformat()
    data["due_date"] = record.due_date.isoformat()
    data["annual_effective_rate"] = str(record.annual_effective_rate)
    if figures is not None:
        data["interest_breakdown"] = format_fields(
            figures.model_dump(include=set(BREAKDOWN_FIELDS)),
            BREAKDOWN_FIELDS,
        )
    return data


def _event_detail(events: Iterable[StatementEvent], kind: EntryType) -> list[dict[str, str]]:
    return [
        {"date": e.date.isoformat(), "amount": format_money(e.amount)}
        for e in events
        if e.kind == kind
    ]


class AccrualService:
    """
    Computes and persists credit statements.

    One instance is shared by the API and the scheduler so both go
    through the same per-debt locks.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._due_day_fallback = (settings or AppSettings()).default_due_day_fallback
        self._audit = audit_logger or AuditLogger()
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_holders: dict[tuple[str, str], int] = {}

    @asynccontextmanager
    async def _debt_lock(self, tenant_id: Optional[str], debt_id: str) -> AsyncIterator[None]:
        """Hold the debt's lock; it is dropped once nobody holds or awaits it."""
        key = (tenant_id or "", str(debt_id))
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_holders[key] = self._lock_holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[key] -= 1
            if not self._lock_holders[key]:
                del self._lock_holders[key]
                del self._locks[key]

    # =========================================================================
    # DATES
    # =========================================================================

    def resolve_statement_window(
        self,
        debt: Debt,
        base_date: date,
        period: Optional[str] = None,
    ) -> StatementWindow:
        """
        Resolve the billing cycle for a debt.

        With a YYYY-MM period the statement closes on that month's
        cutoff day (last day of the month without one). Otherwise it is
        the latest cutoff on or before `base_date`, or the last day of
        the previous month when the debt has no cutoff day.

        The billing period runs from the day after the previous statement
        up to the statement date, exclusive. The due date is the first
        occurrence of the debt's due day on or after the statement date;
        without a due day it is the fallback day of the statement month,
        which can fall before the statement date.

        Raises:
            BadRequestError: If the period is malformed
        """
        cut_off = debt.cut_off_day

        if period:
            year, month = parse_period(period)
            if cut_off:
                statement_date = day_in_month(year, month, cut_off)
            else:
                statement_date = last_day_of_month(year, month)
        elif cut_off:
            current_cut = day_in_month(base_date.year, base_date.month, cut_off)
            if base_date >= current_cut:
                statement_date = current_cut
            else:
                previous = add_months(date(base_date.year, base_date.month, 1), -1)
                statement_date = day_in_month(previous.year, previous.month, cut_off)
        else:
            statement_date = date(base_date.year, base_date.month, 1) - timedelta(days=1)

        if debt.due_day:
            due_date = next_occurrence_of_day(debt.due_day, statement_date)
        else:
            due_date = day_in_month(
                statement_date.year, statement_date.month, self._due_day_fallback
            )

        if cut_off:
            previous = add_months(date(statement_date.year, statement_date.month, 1), -1)
            prev_statement_date = day_in_month(previous.year, previous.month, cut_off)
        else:
            prev_statement_date = date(statement_date.year, statement_date.month, 1) - timedelta(days=1)

        return StatementWindow(
            statement_date=statement_date,
            due_date=due_date,
            prev_statement_date=prev_statement_date,
            period_start=prev_statement_date + timedelta(days=1),
            period_end=statement_date,
        )

    # =========================================================================
    # COMPUTATION
    # =========================================================================

    async def _load_debt(self, storage: LedgerStorageInterface, debt_id: str) -> Debt:
        debt = await storage.get_debt(debt_id)
        if debt is None:
            raise NotFoundError("Debt not found")
        return debt

    @staticmethod
    def _find_record(
        history: Iterable[CreditHistoryRecord],
        debt_id: str,
        statement_date: date,
    ) -> Optional[CreditHistoryRecord]:
        for record in history:
            if record.debt_id == debt_id and record.statement_date == statement_date:
                return record
        return None

    @staticmethod
    def _previous_record(
        history: Iterable[CreditHistoryRecord],
        debt_id: str,
        statement_date: date,
    ) -> Optional[CreditHistoryRecord]:
        earlier = [
            r for r in history
            if r.debt_id == debt_id and r.statement_date < statement_date
        ]
        return max(earlier, key=lambda r: r.statement_date, default=None)

    async def _compute(
        self,
        storage: LedgerStorageInterface,
        debt: Debt,
        window: StatementWindow,
        history: list[CreditHistoryRecord],
        expenses: list[Expense],
        existing: Optional[CreditHistoryRecord] = None,
    ) -> tuple[CreditHistoryRecord, StatementFigures, list[StatementEvent]]:
        previous_record = self._previous_record(history, debt.id, window.statement_date)
        if previous_record is not None:
            previous_balance = previous_record.statement_balance
            paid_against_previous = await storage.sum_payments_for_debt(
                debt.id,
                previous_record.statement_date,
                previous_record.due_date,
            )
        else:
            # Recomputing the first statement keeps its original opening balance
            previous_balance = existing.previous_balance if existing else debt.balance
            paid_against_previous = ZERO

        events = build_events(expenses, debt.id, window.period_start, window.period_end)
        figures = calculate_statement(
            previous_balance=previous_balance,
            events=events,
            annual_rate_unit=debt.annual_rate_unit,
            period_start=window.period_start,
            period_end=window.period_end,
            previous_record=previous_record,
            paid_against_previous=paid_against_previous,
        )
        payment_made = await storage.sum_payments_for_debt(
            debt.id,
            window.statement_date,
            window.due_date,
        )

        record = CreditHistoryRecord(
            debt_id=debt.id,
            statement_date=window.statement_date,
            due_date=window.due_date,
            previous_balance=figures.previous_balance,
            charges=figures.charges,
            interests=figures.interests,
            payments=figures.payments,
            statement_balance=figures.statement_balance,
            bonifiable_interest=figures.bonifiable_interest,
            installment_balance=figures.installment_balance,
            annual_effective_rate=debt.annual_rate_unit,
            term_months=None,
            period_days=window.period_days,
            payment_made=to_money(payment_made),
        )
        return record, figures, events

    @staticmethod
    def running_balance(
        statement_balance: Decimal,
        expenses: Iterable[Expense],
        debt_id: str,
        statement_date: date,
        today: date,
    ) -> Decimal:
        """Statement balance plus charges minus payments in (statement_date, today]."""
        balance = statement_balance
        for expense in expenses:
            if expense.debt_id != debt_id or expense.amount <= 0:
                continue
            if not statement_date < expense.date <= today:
                continue
            if expense.kind == EntryType.CHARGE:
                balance += expense.amount
            elif expense.kind == EntryType.PAYMENT:
                balance -= expense.amount
        return to_money(balance)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def accrue(
        self,
        storage: LedgerStorageInterface,
        debt_id: str,
        *,
        date: DateLike = None,
        period: Optional[str] = None,
        recompute: bool = False,
        today: Optional[DateLike] = None,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> AccrualResult:
        """
        Close one billing cycle and persist its statement record.

        Args:
            storage: The tenant's ledger
            debt_id: Debt to accrue
            date: Base date (YYYY-MM-DD) used to find the latest cutoff
            period: Explicit YYYY-MM cycle; takes precedence over `date`
            recompute: Overwrite an existing record instead of skipping
            today: Day of the run; defaults to the current date

        Raises:
            NotFoundError: If the debt doesn't exist
            BadRequestError: If `date` or `period` is malformed
        """
        run_day = parse_date(today) or _today()
        base_date = parse_date(date) or run_day

        async with self._debt_lock(tenant_id, debt_id):
            debt = await self._load_debt(storage, debt_id)
            if not debt.active:
                await self._audit.log_accrual_skipped(
                    tenant_id, debt.id, DEBT_INACTIVE, correlation_id
                )
                return AccrualResult(skipped=True, reason=DEBT_INACTIVE)

            window = self.resolve_statement_window(debt, base_date, period)
            history = await storage.list_credit_history()
            existing = self._find_record(history, debt.id, window.statement_date)

            if existing is not None and not recompute:
                await self._audit.log_accrual_skipped(
                    tenant_id, debt.id, ALREADY_ACCRUED, correlation_id
                )
                return AccrualResult(
                    skipped=True,
                    reason=ALREADY_ACCRUED,
                    statement_date=window.statement_date,
                )

            row = None
            if existing is not None:
                row = await storage.find_credit_history_row(debt.id, window.statement_date)

            expenses = await storage.list_expenses()
            record, figures, _ = await self._compute(
                storage, debt, window, history, expenses, existing
            )
            balance = self.running_balance(
                record.statement_balance, expenses, debt.id, window.statement_date, run_day
            )

            if row is not None:
                await storage.update_credit_history_record(row, record)
                status = IdempotencyStatus.RECOMPUTED
            else:
                await storage.append_credit_history_record(record)
                status = IdempotencyStatus.CREATED
            await storage.update_debt(DebtUpdate(id=debt.id, balance=balance))

        logger.info(
            "debt_statement_computed",
            debt_id=debt.id,
            statement_date=window.statement_date.isoformat(),
            statement_balance=format_money(record.statement_balance),
            current_balance=format_money(balance),
            status=status.value,
        )
        await self._audit.log_statement_accrued(
            tenant_id=tenant_id,
            idempotency_key=record.idempotency_key,
            statement_balance=format_money(record.statement_balance),
            recomputed=status == IdempotencyStatus.RECOMPUTED,
            correlation_id=correlation_id,
        )

        return AccrualResult(
            statement_date=window.statement_date,
            idempotency=IdempotencyInfo(key=record.idempotency_key, status=status),
            data=format_record(record, figures),
        )

    async def preview(
        self,
        storage: LedgerStorageInterface,
        debt_id: str,
        *,
        date: DateLike = None,
        period: Optional[str] = None,
        recompute: bool = False,
        today: Optional[DateLike] = None,
    ) -> StatementPreview:
        """
        Compute a statement without writing anything.

        An existing record is returned as-is (flagged cached) unless
        `recompute` is set.
        """
        base_date = parse_date(date) or parse_date(today) or _today()

        debt = await self._load_debt(storage, debt_id)
        if not debt.active:
            return StatementPreview(skipped=True, reason=DEBT_INACTIVE)

        window = self.resolve_statement_window(debt, base_date, period)
        history = await storage.list_credit_history()
        existing = self._find_record(history, debt.id, window.statement_date)
        if existing is not None and not recompute:
            return StatementPreview(cached=True, data=format_record(existing))

        expenses = await storage.list_expenses()
        record, figures, events = await self._compute(
            storage, debt, window, history, expenses, existing
        )

        data = format_record(record, figures)
        data["charges_detail"] = _event_detail(events, EntryType.CHARGE)
        data["payments_detail"] = _event_detail(events, EntryType.PAYMENT)

        logger.debug(
            "statement_preview_computed",
            debt_id=debt.id,
            period_start=window.period_start.isoformat(),
            period_end=window.period_end.isoformat(),
            events=len(events),
        )
        return StatementPreview(data=data)
