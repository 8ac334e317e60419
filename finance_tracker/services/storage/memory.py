"""
In-Memory Storage Implementation

Same semantics as the Google Sheets backend (row references are
1-based positions in the credit history list) without any I/O.
Used by the test suite and for local development.
"""

from datetime import date
from typing import Iterable, Optional

from finance_tracker.models.debt import (
    CreditHistoryRecord,
    Debt,
    DebtUpdate,
    Expense,
    UserAccount,
)
from finance_tracker.services.storage.interface import (
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    TenantDirectoryInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Ledger storage held in plain lists."""

    def __init__(
        self,
        debts: Optional[Iterable[Debt]] = None,
        expenses: Optional[Iterable[Expense]] = None,
        credit_history: Optional[Iterable[CreditHistoryRecord]] = None,
    ):
        self.debts: list[Debt] = list(debts or [])
        self.expenses: list[Expense] = list(expenses or [])
        self.credit_history: list[CreditHistoryRecord] = list(credit_history or [])

    async def list_debts(self) -> list[Debt]:
        return [debt.model_copy() for debt in self.debts]

    async def add_debt(self, debt: Debt) -> Debt:
        if any(d.id == debt.id for d in self.debts):
            raise DuplicateError(f"Debt already exists: {debt.id}")
        self.debts.append(debt)
        return debt

    async def update_debt(self, update: DebtUpdate) -> Debt:
        for idx, debt in enumerate(self.debts):
            if debt.id == update.id:
                self.debts[idx] = update.apply_to(debt)
                return self.debts[idx]
        raise NotFoundError(f"Debt not found: {update.id}")

    async def delete_debt(self, debt_id: str) -> bool:
        before = len(self.debts)
        self.debts = [d for d in self.debts if d.id != str(debt_id)]
        return len(self.debts) < before

    async def list_expenses(self) -> list[Expense]:
        return list(self.expenses)

    async def list_credit_history(self) -> list[CreditHistoryRecord]:
        return list(self.credit_history)

    async def append_credit_history_record(self, record: CreditHistoryRecord) -> None:
        self.credit_history.append(record)

    async def update_credit_history_record(
        self,
        row: int,
        record: CreditHistoryRecord,
    ) -> None:
        if not 1 <= row <= len(self.credit_history):
            raise NotFoundError(f"Credit history row not found: {row}")
        self.credit_history[row - 1] = record

    async def find_credit_history_row(
        self,
        debt_id: str,
        statement_date: date,
    ) -> Optional[int]:
        for idx, record in enumerate(self.credit_history, start=1):
            if record.debt_id == str(debt_id) and record.statement_date == statement_date:
                return idx
        return None


class InMemoryTenantDirectory(TenantDirectoryInterface):
    """Tenant directory held in a plain list."""

    def __init__(self, users: Optional[Iterable[UserAccount]] = None):
        self.users: list[UserAccount] = list(users or [])

    async def list_users(self) -> list[UserAccount]:
        return [user.model_copy() for user in self.users]

    async def update_user_tokens(
        self,
        google_id: str,
        access_token: str,
        refresh_token: Optional[str],
    ) -> None:
        for idx, user in enumerate(self.users):
            if user.google_id == google_id:
                self.users[idx] = user.model_copy(update={
                    "access_token": access_token,
                    "refresh_token": refresh_token or user.refresh_token,
                })
                return
        raise NotFoundError(f"User not found: {google_id}")
