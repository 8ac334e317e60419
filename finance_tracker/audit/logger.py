"""
Audit Logger

Every ledger change and every batch run is logged as a typed audit
event through structlog, so a statement figure can always be traced
back to the run (or request) that wrote it.

Correlation IDs tie related events together: the API binds the
request ID, the batch binds one ID per run.
"""

import logging
from typing import Optional
from uuid import uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and structlog to emit JSON lines."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """Central audit logging service."""

    def __init__(self, logger_name: str = "finance_tracker.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    async def log_debt_created(
        self,
        tenant_id: Optional[str],
        debt_id: str,
        name: str,
        correlation_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.debt_created(tenant_id, debt_id, name, correlation_id))

    async def log_debt_updated(
        self,
        tenant_id: Optional[str],
        debt_id: str,
        fields: list[str],
        correlation_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.debt_updated(tenant_id, debt_id, fields, correlation_id))

    async def log_debt_deleted(
        self,
        tenant_id: Optional[str],
        debt_id: str,
        correlation_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.debt_deleted(tenant_id, debt_id, correlation_id))

    async def log_statement_accrued(
        self,
        tenant_id: Optional[str],
        idempotency_key: str,
        statement_balance: str,
        recomputed: bool,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Log a statement written to the ledger."""
        event = AuditEventBuilder.statement_accrued(
            tenant_id=tenant_id,
            idempotency_key=idempotency_key,
            statement_balance=statement_balance,
            recomputed=recomputed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_accrual_skipped(
        self,
        tenant_id: Optional[str],
        debt_id: str,
        reason: str,
        correlation_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.accrual_skipped(tenant_id, debt_id, reason, correlation_id))

    async def log_token_refreshed(
        self,
        tenant_id: str,
        correlation_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.token_refreshed(tenant_id, correlation_id))

    async def log_token_refresh_failed(
        self,
        tenant_id: str,
        error_message: str,
        correlation_id: Optional[str] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.token_refresh_failed(tenant_id, error_message, correlation_id)
        )

    async def log_batch_completed(
        self,
        run_date: str,
        counters: dict[str, int],
        correlation_id: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.batch_completed(run_date, counters, correlation_id))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            tenant_id=tenant_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> str:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a batch run or a request and pass it
    through all subsequent operations.
    """
    return uuid4().hex
