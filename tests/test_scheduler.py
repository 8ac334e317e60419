"""Tests for the nightly accrual batch and its scheduler"""

import httpx
import pytest
from datetime import date, timedelta
from decimal import Decimal
from urllib.parse import parse_qs

from finance_tracker.accrual import AccrualService
from finance_tracker.config import AppSettings, GoogleOAuthSettings, SchedulerSettings
from finance_tracker.models.debt import Debt, UserAccount
from finance_tracker.scheduler import (
    JOB_ID,
    AccrualScheduler,
    DebtAccrualBatch,
    closes_today,
)
from finance_tracker.services.auth import GoogleOAuthClient
from finance_tracker.services.storage import (
    InMemoryLedgerStorage,
    InMemoryTenantDirectory,
    StorageError,
)


RUN_DATE = date(2025, 3, 15)


def google_handler(request: httpx.Request) -> httpx.Response:
    """Fake Google: token-a works, token-b and token-c are expired; only refresh-b refreshes."""
    if request.url.host == "oauth2.googleapis.com":
        form = parse_qs(request.content.decode())
        if form["refresh_token"] == ["refresh-b"]:
            return httpx.Response(200, json={"access_token": "token-b-new"})
        return httpx.Response(400, json={"error": "invalid_grant"})

    if request.headers["Authorization"] in ("Bearer token-a", "Bearer token-b-new"):
        return httpx.Response(200, json={"spreadsheetId": "x"})
    return httpx.Response(401)


def card(debt_id: str, cut_off_day: int = 15, **kwargs) -> Debt:
    return Debt(
        id=debt_id,
        name=debt_id,
        balance=Decimal("500"),
        cut_off_day=cut_off_day,
        due_day=5,
        annual_effective_rate=Decimal("0.30"),
        **kwargs,
    )


class FailingStorage(InMemoryLedgerStorage):
    async def list_debts(self):
        raise StorageError("Failed to read sheet 'Debts'")


class FailingWriteStorage(InMemoryLedgerStorage):
    async def append_credit_history_record(self, record):
        raise StorageError("Failed to append to sheet 'CreditHistory'")


@pytest.fixture
def users() -> list[UserAccount]:
    return [
        UserAccount(id="a", google_id="ga", sheet_id="sheet-a", access_token="token-a", refresh_token="refresh-a"),
        UserAccount(id="b", google_id="gb", sheet_id="sheet-b", access_token="token-b", refresh_token="refresh-b"),
        UserAccount(id="c", google_id="gc", sheet_id="sheet-c", access_token="token-c", refresh_token="refresh-c"),
        UserAccount(id="d", google_id="gd"),
    ]


@pytest.fixture
def ledgers() -> dict[str, InMemoryLedgerStorage]:
    return {
        "a": InMemoryLedgerStorage(debts=[card("a-1"), card("a-2", cut_off_day=20)]),
        "b": InMemoryLedgerStorage(debts=[card("b-1"), card("b-2", active=False)]),
        "c": InMemoryLedgerStorage(debts=[card("c-1")]),
    }


@pytest.fixture
def opened_with() -> dict[str, str]:
    return {}


@pytest.fixture
def batch(users, ledgers, opened_with) -> DebtAccrualBatch:
    def storage_factory(user: UserAccount, access_token: str):
        opened_with[user.id] = access_token
        return ledgers[user.id]

    oauth = GoogleOAuthClient(GoogleOAuthSettings(), transport=httpx.MockTransport(google_handler))
    return DebtAccrualBatch(
        directory=InMemoryTenantDirectory(users),
        oauth_client=oauth,
        accrual_service=AccrualService(settings=AppSettings()),
        storage_factory=storage_factory,
    )


class TestClosesToday:
    """Tests for picking the debts that close on the run date."""

    def test_matching_cutoff(self):
        assert closes_today(card("x"), RUN_DATE)
        assert not closes_today(card("x", cut_off_day=16), RUN_DATE)

    def test_cutoff_past_month_end_closes_on_last_day(self):
        assert closes_today(card("x", cut_off_day=31), date(2025, 2, 28))
        assert closes_today(card("x", cut_off_day=30), date(2024, 2, 29))
        assert not closes_today(card("x", cut_off_day=31), date(2025, 3, 30))

    def test_inactive_or_without_cutoff(self):
        assert not closes_today(card("x", active=False), RUN_DATE)
        assert not closes_today(Debt(name="Loan"), RUN_DATE)


class TestDebtAccrualBatch:
    """Tests for one pass over every tenant."""

    async def test_run_counts_processed_and_errors(self, batch, ledgers):
        summary = await batch.run(today=RUN_DATE)

        assert summary.run_date == RUN_DATE
        assert summary.total_users == 4
        assert summary.processed == 2
        assert summary.skipped == 0
        assert summary.errors == 1
        assert summary.finished_at.utcoffset() == timedelta(0)
        assert summary.finished_at >= summary.started_at

        assert [r.debt_id for r in ledgers["a"].credit_history] == ["a-1"]
        assert [r.debt_id for r in ledgers["b"].credit_history] == ["b-1"]
        assert ledgers["c"].credit_history == []
        assert ledgers["a"].credit_history[0].statement_date == RUN_DATE

    async def test_refreshed_token_is_persisted_and_used(self, batch, opened_with):
        await batch.run(today=RUN_DATE)

        user_b = await batch._directory.get_user("b")
        assert user_b.access_token == "token-b-new"
        assert user_b.refresh_token == "refresh-b"
        assert opened_with == {"a": "token-a", "b": "token-b-new"}

    async def test_second_run_skips_accrued_debts(self, batch):
        await batch.run(today=RUN_DATE)

        summary = await batch.run(today=RUN_DATE)

        assert summary.processed == 0
        assert summary.skipped == 2
        assert summary.errors == 1

    async def test_no_debts_close_on_other_days(self, batch, ledgers):
        summary = await batch.run(today=date(2025, 3, 16))

        assert summary.processed == 0
        assert summary.skipped == 0
        assert all(not ledger.credit_history for ledger in ledgers.values())

    async def test_missing_refresh_token_is_an_error(self, batch, users):
        users[1].refresh_token = None
        batch._directory = InMemoryTenantDirectory(users)

        summary = await batch.run(today=RUN_DATE)

        assert summary.processed == 1
        assert summary.errors == 2

    async def test_failing_tenant_does_not_stop_the_run(self, batch, ledgers):
        ledgers["a"] = FailingStorage(debts=[card("a-1")])

        summary = await batch.run(today=RUN_DATE)

        assert summary.processed == 1
        assert summary.errors == 2
        assert [r.debt_id for r in ledgers["b"].credit_history] == ["b-1"]

    async def test_failing_debt_does_not_stop_the_tenant(self, batch, ledgers):
        ledgers["a"] = FailingWriteStorage(debts=[card("a-1"), card("a-3")])

        summary = await batch.run(today=RUN_DATE)

        assert summary.processed == 1
        assert summary.errors == 3

    async def test_accrual_uses_run_date_for_running_balance(self, batch, ledgers):
        await batch.run(today=RUN_DATE)

        stored = ledgers["a"].debts[0]
        assert stored.balance == ledgers["a"].credit_history[0].statement_balance


class TestAccrualScheduler:
    """Tests for the cron wrapper around the batch."""

    async def test_trigger_now_runs_batch(self, batch):
        scheduler = AccrualScheduler(batch, SchedulerSettings(timezone="UTC"))
        summary = await scheduler.trigger_now()
        assert summary.run_date == scheduler.today()

    async def test_disabled_scheduler_does_not_start(self, batch):
        scheduler = AccrualScheduler(batch, SchedulerSettings(enabled=False))
        scheduler.start()
        assert scheduler.scheduler is None

    async def test_start_registers_daily_job(self, batch):
        scheduler = AccrualScheduler(batch, SchedulerSettings(cron_schedule="30 3 * * *"))
        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(JOB_ID)
            assert job is not None
            assert job.next_run_time is not None
        finally:
            scheduler.stop()
        assert scheduler.scheduler is None

    def test_invalid_cron_schedule(self):
        with pytest.raises(ValueError, match="5 fields"):
            SchedulerSettings(cron_schedule="0 2 * *")
