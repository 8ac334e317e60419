"""
Nightly Accrual Batch

Once a day, for every tenant with a linked spreadsheet, accrue each
active debt whose cutoff day is today. The batch is strictly
sequential across tenants and debts, and a failure in one tenant or
one debt is logged and counted without stopping the run.

A tenant's access token is probed before any sheet I/O; a 401 triggers
one refresh with the stored refresh token, and the new token is
persisted in the tenant directory.
"""

from datetime import date, datetime, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from finance_tracker.accrual import AccrualService
from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.config import SchedulerSettings
from finance_tracker.exceptions import UnauthorizedError, UpstreamUnavailableError
from finance_tracker.finance.dates import clamp_day_to_month
from finance_tracker.models.debt import BatchSummary, Debt, UserAccount
from finance_tracker.services.auth import GoogleOAuthClient
from finance_tracker.services.storage import (
    GoogleSheetsLedgerStorage,
    LedgerStorageInterface,
    TenantDirectoryInterface,
)


logger = structlog.get_logger(__name__)

JOB_ID = "daily_debt_accruals"

StorageFactory = Callable[[UserAccount, str], LedgerStorageInterface]


def sheets_storage_factory(user: UserAccount, access_token: str) -> LedgerStorageInterface:
    """Open a tenant's spreadsheet with the (possibly refreshed) token."""
    return GoogleSheetsLedgerStorage.for_user(user, access_token=access_token)


def closes_today(debt: Debt, today: date) -> bool:
    """True for an active debt whose cutoff day, clamped to this month, is today."""
    if not debt.active or not debt.cut_off_day:
        return False
    return clamp_day_to_month(today.year, today.month, debt.cut_off_day) == today.day


class DebtAccrualBatch:
    """Runs the accrual engine over every tenant once."""

    def __init__(
        self,
        directory: TenantDirectoryInterface,
        oauth_client: GoogleOAuthClient,
        accrual_service: AccrualService,
        storage_factory: StorageFactory = sheets_storage_factory,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._directory = directory
        self._oauth = oauth_client
        self._accrual = accrual_service
        self._storage_factory = storage_factory
        self._audit = audit_logger or AuditLogger()

    async def _ensure_access_token(
        self,
        user: UserAccount,
        correlation_id: str,
    ) -> Optional[str]:
        """
        Return a working access token for the tenant, or None to skip it.

        Only a 401 probe is recoverable, and only with a refresh token.
        """
        log = logger.bind(user_id=user.id, correlation_id=correlation_id)
        status = await self._oauth.probe_sheet_access(user.access_token, user.sheet_id)

        if status == 401:
            if not user.refresh_token:
                log.warning("access_token_expired_without_refresh_token")
                await self._audit.log_token_refresh_failed(
                    user.id, "No refresh token available", correlation_id
                )
                return None
            log.info("access_token_expired_refreshing")
            try:
                refreshed = await self._oauth.refresh_access_token(user.refresh_token)
            except (UnauthorizedError, UpstreamUnavailableError) as e:
                log.error("token_refresh_failed", error=e.message)
                await self._audit.log_token_refresh_failed(user.id, e.message, correlation_id)
                return None
            await self._directory.update_user_tokens(
                user.google_id,
                refreshed.access_token,
                refreshed.refresh_token or user.refresh_token,
            )
            await self._audit.log_token_refreshed(user.id, correlation_id)
            return refreshed.access_token

        if not 200 <= status < 300:
            log.warning("sheet_access_denied", status_code=status)
            return None

        return user.access_token

    async def run(self, today: Optional[date] = None) -> BatchSummary:
        """
        Accrue every debt closing today, across all tenants.

        Never raises for a single tenant or debt; failures are counted
        in the returned summary.
        """
        today = today or date.today()
        correlation_id = create_correlation_id()
        log = logger.bind(correlation_id=correlation_id, run_date=today.isoformat())

        users = await self._directory.list_users()
        summary = BatchSummary(run_date=today, total_users=len(users))
        log.info("debt_accrual_batch_started", users=len(users))

        for user in users:
            if not user.has_linked_storage:
                log.debug("skipping_user_without_storage", user_id=user.id)
                continue

            try:
                access_token = await self._ensure_access_token(user, correlation_id)
                if access_token is None:
                    summary.errors += 1
                    continue

                storage = self._storage_factory(user, access_token)
                debts = await storage.list_debts()
            except Exception as e:
                log.exception("user_accrual_failed", user_id=user.id, error=str(e))
                summary.errors += 1
                continue

            for debt in debts:
                if not closes_today(debt, today):
                    continue
                try:
                    result = await self._accrual.accrue(
                        storage,
                        debt.id,
                        recompute=False,
                        today=today,
                        tenant_id=user.id,
                        correlation_id=correlation_id,
                    )
                except Exception as e:
                    log.exception(
                        "debt_accrual_failed",
                        user_id=user.id,
                        debt_id=debt.id,
                        error=str(e),
                    )
                    summary.errors += 1
                    continue

                if result.skipped:
                    log.info("debt_accrual_skipped", user_id=user.id, debt_id=debt.id, reason=result.reason)
                    summary.skipped += 1
                else:
                    summary.processed += 1

        summary.finished_at = datetime.now(timezone.utc)
        counters = {
            "total_users": summary.total_users,
            "processed": summary.processed,
            "skipped": summary.skipped,
            "errors": summary.errors,
        }
        log.info("debt_accrual_batch_completed", **counters)
        await self._audit.log_batch_completed(today.isoformat(), counters, correlation_id)
        return summary


class AccrualScheduler:
    """Runs DebtAccrualBatch on a cron schedule inside the app's event loop."""

    def __init__(self, batch: DebtAccrualBatch, settings: SchedulerSettings):
        self.batch = batch
        self.settings = settings
        self.scheduler: Optional[AsyncIOScheduler] = None

    def today(self) -> date:
        """Current date in the configured timezone."""
        return datetime.now(ZoneInfo(self.settings.timezone)).date()

    async def trigger_now(self) -> BatchSummary:
        """Run the batch immediately, outside the schedule."""
        return await self.batch.run(today=self.today())

    async def _run_job(self) -> None:
        try:
            await self.trigger_now()
        except Exception:
            logger.exception("scheduled_accrual_batch_failed")

    def start(self) -> None:
        """Start the scheduler; must be called with a running event loop."""
        if not self.settings.enabled:
            logger.info("accrual_scheduler_disabled")
            return
        if self.scheduler is not None:
            logger.warning("accrual_scheduler_already_running")
            return

        self.scheduler = AsyncIOScheduler(timezone=self.settings.timezone)
        self.scheduler.add_job(
            self._run_job,
            trigger=CronTrigger.from_crontab(
                self.settings.cron_schedule,
                timezone=self.settings.timezone,
            ),
            id=JOB_ID,
            name="Daily debt accruals",
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info(
            "accrual_scheduler_started",
            cron_schedule=self.settings.cron_schedule,
            timezone=self.settings.timezone,
        )

    def stop(self) -> None:
        """Stop the scheduler without waiting for a running batch."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("accrual_scheduler_stopped")
