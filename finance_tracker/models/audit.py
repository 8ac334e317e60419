"""
Audit Models for Finance Tracker

Every action that changes a tenant's ledger, and every step of the
nightly batch, produces an audit event. Events are append-only: they
go to the structured log and are never modified afterwards.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Debt CRUD
    DEBT_CREATED = "debt_created"
    DEBT_UPDATED = "debt_updated"
    DEBT_DELETED = "debt_deleted"

    # Accrual
    STATEMENT_ACCRUED = "statement_accrued"
    STATEMENT_RECOMPUTED = "statement_recomputed"
    ACCRUAL_SKIPPED = "accrual_skipped"

    # Identity
    TOKEN_REFRESHED = "token_refreshed"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"

    # Batch
    BATCH_COMPLETED = "batch_completed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context
    tenant_id: Optional[str] = Field(
        default=None,
        description="Tenant the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'debt', 'statement', 'batch')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation: request id in the API, run id in the batch
    correlation_id: Optional[str] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "tenant_id": self.tenant_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": self.correlation_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.debt_created(tenant_id, debt_id, name)
        event = AuditEventBuilder.statement_accrued(tenant_id, key, balance)
    """

    @staticmethod
    def debt_created(
        tenant_id: Optional[str],
        debt_id: str,
        name: str,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            tenant_id=tenant_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt created: {name}",
        )

    @staticmethod
    def debt_updated(
        tenant_id: Optional[str],
        debt_id: str,
        fields: list[str],
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_UPDATED,
            tenant_id=tenant_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt updated: {', '.join(fields) or 'no changes'}",
            details={"fields": fields},
        )

    @staticmethod
    def debt_deleted(
        tenant_id: Optional[str],
        debt_id: str,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_DELETED,
            severity=AuditSeverity.WARNING,
            tenant_id=tenant_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description="Debt deleted",
        )

    @staticmethod
    def statement_accrued(
        tenant_id: Optional[str],
        idempotency_key: str,
        statement_balance: str,
        recomputed: bool,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.STATEMENT_RECOMPUTED
            if recomputed
            else AuditEventType.STATEMENT_ACCRUED
        )
        verb = "recomputed" if recomputed else "accrued"
        return AuditEvent(
            event_type=event_type,
            tenant_id=tenant_id,
            entity_type="statement",
            entity_id=idempotency_key,
            correlation_id=correlation_id,
            description=f"Statement {verb}: balance {statement_balance}",
            details={"statement_balance": statement_balance},
        )

    @staticmethod
    def accrual_skipped(
        tenant_id: Optional[str],
        debt_id: str,
        reason: str,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCRUAL_SKIPPED,
            severity=AuditSeverity.DEBUG,
            tenant_id=tenant_id,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Accrual skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def token_refreshed(
        tenant_id: str,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOKEN_REFRESHED,
            tenant_id=tenant_id,
            entity_type="user",
            entity_id=tenant_id,
            correlation_id=correlation_id,
            description="Access token refreshed",
        )

    @staticmethod
    def token_refresh_failed(
        tenant_id: str,
        error_message: str,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOKEN_REFRESH_FAILED,
            severity=AuditSeverity.WARNING,
            tenant_id=tenant_id,
            entity_type="user",
            entity_id=tenant_id,
            correlation_id=correlation_id,
            description="Access token refresh failed",
            error_message=error_message,
        )

    @staticmethod
    def batch_completed(
        run_date: str,
        counters: dict[str, int],
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        severity = AuditSeverity.WARNING if counters.get("errors") else AuditSeverity.INFO
        return AuditEvent(
            event_type=AuditEventType.BATCH_COMPLETED,
            severity=severity,
            entity_type="batch",
            entity_id=run_date,
            correlation_id=correlation_id,
            description=(
                f"Accrual batch finished: {counters.get('processed', 0)} processed, "
                f"{counters.get('errors', 0)} errors"
            ),
            details=counters,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            tenant_id=tenant_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
