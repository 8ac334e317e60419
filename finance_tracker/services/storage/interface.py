"""
Abstract Storage Interface

Business logic talks to these interfaces only. Implementations:

1. Google Sheets, one spreadsheet per tenant (production)
2. In-memory (tests, local development)

The interface is intentionally small: just the row operations the
debt endpoints and the accrual engine need.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional

from finance_tracker.exceptions import (
    FinanceTrackerError,
    NotFoundError,
    UpstreamUnavailableError,
)
from finance_tracker.models.debt import (
    CreditHistoryRecord,
    Debt,
    DebtUpdate,
    Expense,
    UserAccount,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for one tenant's ledger.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def list_debts(self) -> list[Debt]:
        """List every debt, active or not."""
        pass

    async def get_debt(self, debt_id: str) -> Optional[Debt]:
        """
        Retrieve a debt by its ID.

        Returns:
            The debt if found, None otherwise
        """
        for debt in await self.list_debts():
            if debt.id == str(debt_id):
                return debt
        return None

    @abstractmethod
    async def add_debt(self, debt: Debt) -> Debt:
        """
        Save a new debt.

        Raises:
            DuplicateError: If a debt with the same ID exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_debt(self, update: DebtUpdate) -> Debt:
        """
        Apply a partial update to a debt.

        Returns:
            The debt as stored after the update

        Raises:
            NotFoundError: If the debt doesn't exist
        """
        pass

    @abstractmethod
    async def delete_debt(self, debt_id: str) -> bool:
        """
        Delete a debt by ID.

        Returns:
            True if a debt was deleted, False if none matched
        """
        pass

    @abstractmethod
    async def list_expenses(self) -> list[Expense]:
        """List every expense row."""
        pass

    @abstractmethod
    async def list_credit_history(self) -> list[CreditHistoryRecord]:
        """List every statement record, in sheet order."""
        pass

    @abstractmethod
    async def append_credit_history_record(self, record: CreditHistoryRecord) -> None:
        """Append a statement record."""
        pass

    @abstractmethod
    async def update_credit_history_record(
        self,
        row: int,
        record: CreditHistoryRecord,
    ) -> None:
        """
        Overwrite the statement record at `row`.

        Args:
            row: Row reference returned by find_credit_history_row
            record: Replacement record
        """
        pass

    @abstractmethod
    async def find_credit_history_row(
        self,
        debt_id: str,
        statement_date: date,
    ) -> Optional[int]:
        """
        Locate the record for (debt_id, statement_date).

        Returns:
            A row reference usable with update_credit_history_record,
            or None if no record exists
        """
        pass

    async def sum_payments_for_debt(
        self,
        debt_id: str,
        from_date: date,
        to_date: date,
    ) -> Decimal:
        """
        Total of positive payments for a debt with from_date <= date <= to_date.
        """
        total = Decimal("0")
        for expense in await self.list_expenses():
            if expense.debt_id != str(debt_id) or expense.amount <= 0:
                continue
            if expense.entry_type != "payment":
                continue
            if from_date <= expense.date <= to_date:
                total += expense.amount
        return total


class TenantDirectoryInterface(ABC):
    """
    Abstract interface for the tenant (user) directory.

    Holds each tenant's linked spreadsheet and OAuth tokens.
    """

    @abstractmethod
    async def list_users(self) -> list[UserAccount]:
        """List every registered tenant."""
        pass

    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        """Find a tenant by its ID."""
        for user in await self.list_users():
            if user.id == str(user_id):
                return user
        return None

    @abstractmethod
    async def update_user_tokens(
        self,
        google_id: str,
        access_token: str,
        refresh_token: Optional[str],
    ) -> None:
        """
        Persist refreshed OAuth tokens for a tenant.

        Raises:
            NotFoundError: If no tenant has this Google ID
        """
        pass


class StorageError(UpstreamUnavailableError):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class SchemaMismatchError(StorageError):
    """Sheet header does not match the expected column layout."""
    pass


class DuplicateError(FinanceTrackerError):
    """Attempted to insert a duplicate entity."""

    status_code = 409


__all__ = [
    "ConnectionError",
    "DuplicateError",
    "LedgerStorageInterface",
    "NotFoundError",
    "SchemaMismatchError",
    "StorageError",
    "TenantDirectoryInterface",
]
