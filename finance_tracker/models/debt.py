"""
Core Data Models for Finance Tracker

These models define the schemas for every entity read from or written
to a tenant's spreadsheet, and for the results the accrual engine
hands back to callers.

Spreadsheet rows are untyped; the storage layer converts each row into
one of these models through an explicit column table, so business
logic never indexes into raw rows.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from finance_tracker.finance.dates import normalize_annual_rate


# =============================================================================
# ENUMS
# =============================================================================

class EntryType(str, Enum):
    """
    Movement types the accrual engine understands.

    Expenses may carry any other entry type (or none); the engine
    ignores those.
    """
    CHARGE = "charge"
    PAYMENT = "payment"


class IdempotencyStatus(str, Enum):
    """How an accrual call affected the ledger."""
    CREATED = "created"
    RECOMPUTED = "recomputed"


# =============================================================================
# DEBT
# =============================================================================

class Debt(BaseModel):
    """
    A line of credit (usually a credit card).

    `balance` is the only field the accrual engine writes: after each
    statement it holds the statement balance plus movements dated after
    the statement up to the day of the run.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        description="Unique debt ID within the tenant's sheet"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    issuer: str = Field(
        default="",
        max_length=200,
        description="Issuing bank"
    )
    credit_limit: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Approved credit limit"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Current running balance"
    )
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the payment is due"
    )
    cut_off_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month the statement closes"
    )
    mask_pan: Optional[str] = Field(
        default=None,
        max_length=30,
        description="Masked card number, e.g. **** 1234"
    )
    annual_effective_rate: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Annual effective rate, as a percentage (>1) or a unit fraction (<=1)"
    )
    brand: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Card network"
    )
    active: bool = Field(
        default=True,
        description="Inactive debts are never accrued"
    )

    @property
    def annual_rate_unit(self) -> Decimal:
        """Annual effective rate as a unit fraction."""
        return normalize_annual_rate(self.annual_effective_rate)


class DebtUpdate(BaseModel):
    """
    Partial update for a debt.

    Only fields explicitly set are written; everything else keeps
    its stored value.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    issuer: Optional[str] = Field(default=None, max_length=200)
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    balance: Optional[Decimal] = None
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    cut_off_day: Optional[int] = Field(default=None, ge=1, le=31)
    mask_pan: Optional[str] = Field(default=None, max_length=30)
    annual_effective_rate: Optional[Decimal] = Field(default=None, ge=0)
    brand: Optional[str] = Field(default=None, max_length=50)
    active: Optional[bool] = None

    def changes(self) -> dict[str, Any]:
        """Fields set on this update, excluding the id."""
        return self.model_dump(exclude_unset=True, exclude={"id"})

    def apply_to(self, debt: Debt) -> Debt:
        """Return a copy of `debt` with these changes applied."""
        return debt.model_copy(update=self.changes())


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(BaseModel):
    """
    A dated monetary movement, optionally tied to a debt.

    Only positive amounts with a `charge` or `payment` entry type
    take part in statement computation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    date: date
    description: str = ""
    category: str = ""
    amount: Decimal = Decimal("0")
    debt_id: Optional[str] = None
    entry_type: str = ""

    @field_validator("entry_type", mode="before")
    @classmethod
    def lowercase_entry_type(cls, v: Any) -> str:
        return str(v or "").strip().lower()

    @property
    def kind(self) -> Optional[EntryType]:
        """Entry type as an EntryType, or None when the engine ignores it."""
        try:
            return EntryType(self.entry_type)
        except ValueError:
            return None


class StatementEvent(BaseModel):
    """A charge or payment inside a billing period."""
    model_config = ConfigDict(frozen=True)

    date: date
    kind: EntryType
    amount: Decimal = Field(..., gt=0)

    @property
    def sort_key(self) -> tuple[date, int]:
        """Chronological, payments before charges on the same day."""
        return (self.date, 0 if self.kind == EntryType.PAYMENT else 1)


# =============================================================================
# STATEMENTS
# =============================================================================

class CreditHistoryRecord(BaseModel):
    """
    One billing cycle of one debt.

    (debt_id, statement_date) identifies the record; the accrual
    service writes at most one per key and only overwrites it on an
    explicit recompute.
    """

    debt_id: str = Field(..., min_length=1)
    statement_date: date
    due_date: date
    previous_balance: Decimal = Decimal("0")
    charges: Decimal = Decimal("0")
    interests: Decimal = Decimal("0")
    payments: Decimal = Decimal("0")
    statement_balance: Decimal = Field(default=Decimal("0"), ge=0)
    bonifiable_interest: Decimal = Decimal("0")
    installment_balance: Decimal = Decimal("0")
    annual_effective_rate: Decimal = Decimal("0")
    term_months: Optional[int] = None
    period_days: int = Field(default=0, ge=0)
    payment_made: Decimal = Decimal("0")

    @property
    def idempotency_key(self) -> str:
        return f"{self.debt_id}|{self.statement_date.isoformat()}"


class StatementWindow(BaseModel):
    """
    Dates bounding one billing cycle.

    Events belong to the cycle when period_start <= date < period_end.
    period_start is the day after the previous statement and period_end
    is the statement date itself. The due date may fall before the
    statement date when the debt has no due day of its own.
    """

    statement_date: date
    due_date: date
    prev_statement_date: date
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def validate_order(self) -> "StatementWindow":
        if self.period_end <= self.period_start:
            raise ValueError("Billing period must cover at least one day")
        return self

    @property
    def period_days(self) -> int:
        return (self.period_end - self.period_start).days


class StatementFigures(BaseModel):
    """Output of the statement calculator, rounded to cents."""

    previous_balance: Decimal
    charges: Decimal
    payments: Decimal
    interest_on_balance: Decimal
    bonifiable_interest: Decimal
    interest_carry_over: Decimal
    interests: Decimal
    statement_balance: Decimal
    installment_balance: Decimal


class IdempotencyInfo(BaseModel):
    key: str
    status: IdempotencyStatus


class AccrualResult(BaseModel):
    """
    Result of one accrual attempt.

    A skipped result carries a reason (and the statement date when the
    skip was due to an existing record); a computed result carries the
    idempotency key and the formatted record.
    """

    success: bool = True
    skipped: bool = False
    reason: Optional[str] = None
    statement_date: Optional[date] = None
    idempotency: Optional[IdempotencyInfo] = None
    data: Optional[dict[str, Any]] = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class StatementPreview(BaseModel):
    """What-if statement computed without persisting anything."""

    success: bool = True
    skipped: bool = False
    reason: Optional[str] = None
    cached: bool = False
    data: Optional[dict[str, Any]] = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# =============================================================================
# TENANTS AND BATCH
# =============================================================================

class UserAccount(BaseModel):
    """A tenant: one Google account linked to one spreadsheet."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    google_id: str = ""
    email: str = ""
    name: str = ""
    sheet_id: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

    @property
    def has_linked_storage(self) -> bool:
        return bool(self.sheet_id and self.access_token)


class BatchSummary(BaseModel):
    """Counters for one scheduled accrual run."""

    run_date: date
    total_users: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None
