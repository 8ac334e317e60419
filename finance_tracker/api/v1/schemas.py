"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.debt import Debt, DebtUpdate


class DebtCreateRequest(BaseModel):
    """Request body for POST /api/debts"""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = Field(default=None, min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    issuer: str = ""
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    balance: Decimal = Decimal("0")
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    cut_off_day: Optional[int] = Field(default=None, ge=1, le=31)
    mask_pan: Optional[str] = None
    annual_effective_rate: Optional[Decimal] = Field(default=None, ge=0)
    brand: Optional[str] = None
    active: bool = True

    def to_debt(self) -> Debt:
        return Debt(**self.model_dump(exclude_none=True))


class DebtUpdateRequest(BaseModel):
    """Request body for PUT /api/debts/{debt_id}; only sent fields change"""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    issuer: Optional[str] = None
    credit_limit: Optional[Decimal] = Field(default=None, ge=0)
    balance: Optional[Decimal] = None
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    cut_off_day: Optional[int] = Field(default=None, ge=1, le=31)
    mask_pan: Optional[str] = None
    annual_effective_rate: Optional[Decimal] = Field(default=None, ge=0)
    brand: Optional[str] = None
    active: Optional[bool] = None

    def to_update(self, debt_id: str) -> DebtUpdate:
        return DebtUpdate(id=debt_id, **self.model_dump(exclude_unset=True))


class ApiResponse(BaseModel):
    """Envelope for successful responses"""

    success: bool = True
    message: Optional[str] = None
    count: Optional[int] = None
    data: Any = None


class ErrorResponse(BaseModel):
    """Envelope for error responses"""

    success: bool = False
    error: str
    details: Optional[list[dict[str, Any]]] = None
