"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker system.
All data flowing through the system must conform to these schemas.
"""

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
    StatementFigures,
    StatementPreview,
    StatementWindow,
    UserAccount,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Debt and statement models
    "AccrualResult",
    "BatchSummary",
    "CreditHistoryRecord",
    "Debt",
    "DebtUpdate",
    "EntryType",
    "Expense",
    "IdempotencyInfo",
    "IdempotencyStatus",
    "StatementEvent",
    "StatementFigures",
    "StatementPreview",
    "StatementWindow",
    "UserAccount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
