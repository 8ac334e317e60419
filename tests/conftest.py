"""Pytest fixtures for testing"""

from datetime import date
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from finance_tracker.accrual import AccrualService
from finance_tracker.api import create_app
from finance_tracker.config import AppSettings, GoogleOAuthSettings, Settings
from finance_tracker.models.debt import Debt, Expense, UserAccount
from finance_tracker.orchestrator import create_app_components
from finance_tracker.services.auth import GoogleOAuthClient
from finance_tracker.services.storage import InMemoryLedgerStorage, InMemoryTenantDirectory


@pytest.fixture
def debt() -> Debt:
    """Credit card closing on the 15th, due on the 5th, 36% a year."""
    return Debt(
        id="card-1",
        name="Visa Gold",
        issuer="Banco Uno",
        credit_limit=Decimal("5000"),
        balance=Decimal("1000"),
        due_day=5,
        cut_off_day=15,
        annual_effective_rate=Decimal("0.36"),
        mask_pan="**** 1234",
        brand="VISA",
    )


@pytest.fixture
def cycle_expenses() -> list[Expense]:
    """A charge on day 5 and a payment on day 10 of the cycle closing Mar 15."""
    return [
        Expense(id="e1", date=date(2025, 2, 20), description="Groceries",
                amount=Decimal("200"), debt_id="card-1", entry_type="charge"),
        Expense(id="e2", date=date(2025, 2, 25), description="Payment",
                amount=Decimal("300"), debt_id="card-1", entry_type="payment"),
    ]


@pytest.fixture
def storage(debt: Debt, cycle_expenses: list[Expense]) -> InMemoryLedgerStorage:
    return InMemoryLedgerStorage(debts=[debt], expenses=cycle_expenses)


@pytest.fixture
def accrual_service() -> AccrualService:
    return AccrualService(settings=AppSettings())


@pytest.fixture
def user() -> UserAccount:
    return UserAccount(
        id="user-1",
        google_id="google-1",
        email="ana@example.com",
        name="Ana",
        sheet_id="sheet-1",
        access_token="token-1",
        refresh_token="refresh-1",
    )


@pytest.fixture
def directory(user: UserAccount) -> InMemoryTenantDirectory:
    unlinked = UserAccount(id="user-2", google_id="google-2", email="bo@example.com")
    return InMemoryTenantDirectory(users=[user, unlinked])


@pytest.fixture
def client(storage: InMemoryLedgerStorage, directory: InMemoryTenantDirectory) -> TestClient:
    """Create FastAPI test client backed by in-memory storage"""
    oauth = GoogleOAuthClient(
        GoogleOAuthSettings(),
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
    )
    components = create_app_components(
        settings=Settings(),
        directory=directory,
        oauth_client=oauth,
        storage_factory=lambda user, token: storage,
    )
    return TestClient(create_app(components))
