"""
Tests for Finance Tracker

Test strategy:
1. Unit tests for individual components (models, calculator, dates)
2. Integration tests for flows (in-memory storage, mocked HTTP)
3. No real API calls in tests
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from finance_tracker.models.debt import (
    AccrualResult,
    BatchSummary,
    CreditHistoryRecord,
    Debt,
    DebtUpdate,
    EntryType,
    Expense,
    IdempotencyInfo,
    IdempotencyStatus,
    StatementEvent,
    StatementWindow,
    UserAccount,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestDebtModels:
    """Tests for debt-related Pydantic models."""

    def test_debt_creation(self):
        debt = Debt(name="Visa", balance=Decimal("100.50"), cut_off_day=15)
        assert debt.name == "Visa"
        assert debt.active is True
        assert debt.id

    def test_debt_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        debt = Debt(name="  Visa Gold  ")
        assert debt.name == "Visa Gold"

    def test_debt_rejects_out_of_range_days(self):
        with pytest.raises(ValueError):
            Debt(name="Visa", due_day=32)
        with pytest.raises(ValueError):
            Debt(name="Visa", cut_off_day=0)

    def test_annual_rate_unit_normalizes_percentage(self):
        assert Debt(name="A", annual_effective_rate=Decimal("18")).annual_rate_unit == Decimal("0.18")
        assert Debt(name="B", annual_effective_rate=Decimal("0.18")).annual_rate_unit == Decimal("0.18")
        assert Debt(name="C").annual_rate_unit == Decimal("0")

    def test_debt_update_applies_only_set_fields(self):
        debt = Debt(id="d1", name="Visa", issuer="Bank", balance=Decimal("10"))
        update = DebtUpdate(id="d1", balance=Decimal("25"))

        updated = update.apply_to(debt)

        assert update.changes() == {"balance": Decimal("25")}
        assert updated.balance == Decimal("25")
        assert updated.issuer == "Bank"
        assert debt.balance == Decimal("10")


class TestExpenseModels:
    """Tests for expenses and statement events."""

    def test_entry_type_is_lowercased(self):
        expense = Expense(date=date(2025, 1, 1), amount=Decimal("5"), entry_type=" Payment ")
        assert expense.entry_type == "payment"
        assert expense.kind == EntryType.PAYMENT

    def test_unknown_entry_type_has_no_kind(self):
        expense = Expense(date=date(2025, 1, 1), amount=Decimal("5"), entry_type="transfer")
        assert expense.kind is None

    def test_statement_event_requires_positive_amount(self):
        with pytest.raises(ValueError):
            StatementEvent(date=date(2025, 1, 1), kind=EntryType.CHARGE, amount=Decimal("0"))

    def test_payment_sorts_before_charge_on_same_day(self):
        charge = StatementEvent(date=date(2025, 1, 1), kind=EntryType.CHARGE, amount=Decimal("1"))
        payment = StatementEvent(date=date(2025, 1, 1), kind=EntryType.PAYMENT, amount=Decimal("1"))
        assert sorted([charge, payment], key=lambda e: e.sort_key)[0] is payment


class TestStatementModels:
    """Tests for statement records and windows."""

    def test_idempotency_key(self):
        record = CreditHistoryRecord(
            debt_id="card-1",
            statement_date=date(2025, 3, 15),
            due_date=date(2025, 4, 5),
        )
        assert record.idempotency_key == "card-1|2025-03-15"

    def test_statement_balance_cannot_be_negative(self):
        with pytest.raises(ValueError):
            CreditHistoryRecord(
                debt_id="card-1",
                statement_date=date(2025, 3, 15),
                due_date=date(2025, 4, 5),
                statement_balance=Decimal("-1"),
            )

    def test_batch_summary_started_at_is_utc(self):
        summary = BatchSummary(run_date=date(2025, 3, 15))
        assert summary.started_at.utcoffset() == timedelta(0)

    def test_window_period_days(self):
        window = StatementWindow(
            statement_date=date(2025, 3, 15),
            due_date=date(2025, 4, 5),
            prev_statement_date=date(2025, 2, 15),
            period_start=date(2025, 2, 16),
            period_end=date(2025, 3, 15),
        )
        assert window.period_days == 27

    def test_window_due_date_may_precede_statement(self):
        """Test that a due date earlier in the statement month is accepted."""
        window = StatementWindow(
            statement_date=date(2025, 3, 31),
            due_date=date(2025, 3, 25),
            prev_statement_date=date(2025, 2, 28),
            period_start=date(2025, 3, 1),
            period_end=date(2025, 3, 31),
        )
        assert window.due_date < window.statement_date

    def test_window_empty_period_validation(self):
        """Test that the billing period must cover at least one day."""
        with pytest.raises(ValueError, match="Billing period must cover at least one day"):
            StatementWindow(
                statement_date=date(2025, 3, 15),
                due_date=date(2025, 4, 5),
                prev_statement_date=date(2025, 3, 14),
                period_start=date(2025, 3, 15),
                period_end=date(2025, 3, 15),
            )

    def test_accrual_result_response_drops_empty_fields(self):
        result = AccrualResult(
            statement_date=date(2025, 3, 15),
            idempotency=IdempotencyInfo(key="card-1|2025-03-15", status=IdempotencyStatus.CREATED),
            data={"statement_balance": "925.84"},
        )
        response = result.to_response()
        assert response["statement_date"] == "2025-03-15"
        assert response["idempotency"] == {"key": "card-1|2025-03-15", "status": "created"}
        assert "reason" not in response

    def test_user_linked_storage(self):
        assert UserAccount(id="u", sheet_id="s", access_token="t").has_linked_storage
        assert not UserAccount(id="u", sheet_id="s").has_linked_storage


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            description="Debt created: Visa",
        )
        assert event.event_type == AuditEventType.DEBT_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_timestamp_is_utc(self):
        event = AuditEvent(event_type=AuditEventType.DEBT_CREATED, description="Debt created")
        assert event.timestamp.utcoffset() == timedelta(0)
        assert event.to_log_dict()["timestamp"].endswith("+00:00")

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.STATEMENT_ACCRUED,
            description="Statement accrued",
            details={"statement_balance": "925.84"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "statement_accrued"
        assert log_dict["details"]["statement_balance"] == "925.84"

    def test_audit_event_builder_statement_recomputed(self):
        event = AuditEventBuilder.statement_accrued(
            tenant_id="user-1",
            idempotency_key="card-1|2025-03-15",
            statement_balance="925.84",
            recomputed=True,
            correlation_id="req-1",
        )
        assert event.event_type == AuditEventType.STATEMENT_RECOMPUTED
        assert event.entity_id == "card-1|2025-03-15"
        assert event.correlation_id == "req-1"

    def test_audit_event_builder_token_refresh_failed(self):
        event = AuditEventBuilder.token_refresh_failed("user-1", "invalid_grant")
        assert event.event_type == AuditEventType.TOKEN_REFRESH_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "invalid_grant"

    def test_audit_event_builder_batch_with_errors_is_warning(self):
        event = AuditEventBuilder.batch_completed(
            "2025-03-15", {"processed": 2, "skipped": 0, "errors": 1}
        )
        assert event.severity == AuditSeverity.WARNING
        assert "2 processed" in event.description
