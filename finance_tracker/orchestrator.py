"""
Main Orchestrator for Finance Tracker

Ties the components together and defines the end-to-end flows the
HTTP surface and the scheduler use:
1. Debt management (CRUD, summaries, installment plans)
2. Statement accrual and preview

The orchestrator owns the boundaries: every ledger change is audited,
and every component is built once here and handed to its users
explicitly (no module-level singletons).
"""

from datetime import date
from typing import Any, Optional

from finance_tracker.accrual import AccrualService
from finance_tracker.audit import AuditLogger
from finance_tracker.config import Settings, get_settings
from finance_tracker.exceptions import BadRequestError, NotFoundError
from finance_tracker.finance.dates import next_occurrence_of_day, parse_date
from finance_tracker.finance.money import format_fields
from finance_tracker.finance.summary import build_debt_summary, build_installment_plan
from finance_tracker.models.debt import (
    AccrualResult,
    Debt,
    DebtUpdate,
    StatementPreview,
)
from finance_tracker.scheduler import (
    AccrualScheduler,
    DebtAccrualBatch,
    StorageFactory,
    sheets_storage_factory,
)
from finance_tracker.services.auth import GoogleOAuthClient
from finance_tracker.services.storage import (
    GoogleSheetsTenantDirectory,
    LedgerStorageInterface,
    TenantDirectoryInterface,
)


DEBT_MONEY_FIELDS = ("credit_limit", "balance")


def format_debt(debt: Debt) -> dict[str, Any]:
    """Render a debt for a response, currency as two-decimal strings."""
    data = format_fields(debt.model_dump(), DEBT_MONEY_FIELDS)
    if debt.annual_effective_rate is not None:
        data["annual_effective_rate"] = str(debt.annual_effective_rate)
    return data


class DebtFlow:
    """
    Debt operations on one tenant's ledger.

    Every method takes the tenant's storage explicitly; the flow itself
    holds no per-tenant state.
    """

    def __init__(
        self,
        accrual_service: AccrualService,
        audit_logger: Optional[AuditLogger] = None,
        max_installment_months: int = 120,
    ):
        self._accrual = accrual_service
        self._audit_logger = audit_logger or AuditLogger()
        self._max_installment_months = max_installment_months

    async def _require_debt(self, storage: LedgerStorageInterface, debt_id: str) -> Debt:
        debt = await storage.get_debt(debt_id)
        if debt is None:
            raise NotFoundError("Debt not found")
        return debt

    async def list_debts(self, storage: LedgerStorageInterface) -> list[Debt]:
        return await storage.list_debts()

    async def create_debt(
        self,
        storage: LedgerStorageInterface,
        debt: Debt,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Debt:
        saved = await storage.add_debt(debt)
        await self._audit_logger.log_debt_created(tenant_id, saved.id, saved.name, correlation_id)
        return saved

    async def update_debt(
        self,
        storage: LedgerStorageInterface,
        update: DebtUpdate,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> Debt:
        saved = await storage.update_debt(update)
        await self._audit_logger.log_debt_updated(
            tenant_id, saved.id, sorted(update.changes()), correlation_id
        )
        return saved

    async def delete_debt(
        self,
        storage: LedgerStorageInterface,
        debt_id: str,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """
        Raises:
            NotFoundError: If no debt has this ID
        """
        if not await storage.delete_debt(debt_id):
            raise NotFoundError("Debt not found")
        await self._audit_logger.log_debt_deleted(tenant_id, debt_id, correlation_id)

    async def debt_summary(
        self,
        storage: LedgerStorageInterface,
        debt_id: str,
        today: Optional[date] = None,
    ) -> dict[str, Any]:
        debt = await self._require_debt(storage, debt_id)
        return {
            "debt": format_debt(debt),
            "summary": build_debt_summary(debt, today or date.today()),
        }

    async def debts_summary(
        self,
        storage: LedgerStorageInterface,
        today: Optional[date] = None,
    ) -> list[dict[str, Any]]:
        today = today or date.today()
        return [
            {"debt": format_debt(debt), "summary": build_debt_summary(debt, today)}
            for debt in await storage.list_debts()
        ]

    async def installment_plan(
        self,
        storage: LedgerStorageInterface,
        debt_id: str,
        months: int,
        start: Optional[str] = None,
        today: Optional[date] = None,
    ) -> dict[str, Any]:
        """
        Level-payment plan for the debt's current balance.

        The schedule starts on `start`, or the next due date, or today.

        Raises:
            BadRequestError: If months is out of range or start is malformed
            NotFoundError: If the debt doesn't exist
        """
        if not 1 <= months <= self._max_installment_months:
            raise BadRequestError(
                f"months must be between 1 and {self._max_installment_months}"
            )
        start_date = parse_date(start)
        debt = await self._require_debt(storage, debt_id)
        today = today or date.today()
        if start_date is None:
            start_date = next_occurrence_of_day(debt.due_day, today) if debt.due_day else today
        return build_installment_plan(debt, months, start_date)

    async def accrue(
        self,
        storage: LedgerStorageInterface,
        debt_id: str,
        *,
        date: Optional[str] = None,
        period: Optional[str] = None,
        recompute: bool = False,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> AccrualResult:
        return await self._accrual.accrue(
            storage,
            debt_id,
            date=date,
            period=period,
            recompute=recompute,
            tenant_id=tenant_id,
            correlation_id=correlation_id,
        )

    async def preview(
        self,
        storage: LedgerStorageInterface,
        debt_id: str,
        *,
        date: Optional[str] = None,
        period: Optional[str] = None,
        recompute: bool = False,
    ) -> StatementPreview:
        return await self._accrual.preview(
            storage,
            debt_id,
            date=date,
            period=period,
            recompute=recompute,
        )


class AppComponents:
    """Everything the API and the scheduler share, built once at startup."""

    def __init__(
        self,
        settings: Settings,
        audit_logger: AuditLogger,
        accrual_service: AccrualService,
        debt_flow: DebtFlow,
        directory: TenantDirectoryInterface,
        oauth_client: GoogleOAuthClient,
        batch: DebtAccrualBatch,
        scheduler: AccrualScheduler,
        storage_factory: StorageFactory,
    ):
        self.settings = settings
        self.audit_logger = audit_logger
        self.accrual_service = accrual_service
        self.debt_flow = debt_flow
        self.directory = directory
        self.oauth_client = oauth_client
        self.batch = batch
        self.scheduler = scheduler
        self.storage_factory = storage_factory


def create_app_components(
    settings: Optional[Settings] = None,
    directory: Optional[TenantDirectoryInterface] = None,
    oauth_client: Optional[GoogleOAuthClient] = None,
    storage_factory: StorageFactory = sheets_storage_factory,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to build from (defaults to get_settings())
        directory: Tenant directory; defaults to the master Users sheet
        oauth_client: Identity provider client
        storage_factory: Opens a tenant's ledger from (user, access token)
    """
    settings = settings or get_settings()
    app_settings = settings.app

    audit_logger = AuditLogger()
    accrual_service = AccrualService(settings=app_settings, audit_logger=audit_logger)
    debt_flow = DebtFlow(
        accrual_service=accrual_service,
        audit_logger=audit_logger,
        max_installment_months=app_settings.max_installment_months,
    )

    directory = directory or GoogleSheetsTenantDirectory(settings=settings.google_sheets)
    oauth_client = oauth_client or GoogleOAuthClient(settings.google_oauth)
    batch = DebtAccrualBatch(
        directory=directory,
        oauth_client=oauth_client,
        accrual_service=accrual_service,
        storage_factory=storage_factory,
        audit_logger=audit_logger,
    )

    return AppComponents(
        settings=settings,
        audit_logger=audit_logger,
        accrual_service=accrual_service,
        debt_flow=debt_flow,
        directory=directory,
        oauth_client=oauth_client,
        batch=batch,
        scheduler=AccrualScheduler(batch, settings.scheduler),
        storage_factory=storage_factory,
    )
