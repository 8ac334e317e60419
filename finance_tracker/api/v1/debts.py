"""Debt endpoints: CRUD, summaries, installment plans and statement accrual"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Query

from finance_tracker.api.dependencies import (
    get_current_user,
    get_debt_flow,
    get_request_id,
    get_storage,
)
from finance_tracker.api.v1.schemas import ApiResponse, DebtCreateRequest, DebtUpdateRequest
from finance_tracker.models.debt import UserAccount
from finance_tracker.orchestrator import DebtFlow, format_debt
from finance_tracker.services.storage import LedgerStorageInterface

router = APIRouter()

logger = structlog.get_logger(__name__)


@router.get("/debts", response_model=ApiResponse, response_model_exclude_none=True)
async def list_debts(
    storage: LedgerStorageInterface = Depends(get_storage),
    flow: DebtFlow = Depends(get_debt_flow),
):
    """List every debt of the tenant."""
    debts = await flow.list_debts(storage)
    return ApiResponse(data=[format_debt(d) for d in debts], count=len(debts))


@router.post(
    "/debts",
    status_code=201,
    response_model=ApiResponse,
    response_model_exclude_none=True,
)
async def create_debt(
    body: DebtCreateRequest,
    storage: LedgerStorageInterface = Depends(get_storage),
    user: UserAccount = Depends(get_current_user),
    flow: DebtFlow = Depends(get_debt_flow),
    request_id: str = Depends(get_request_id),
):
    logger.info("debt_create_requested", name=body.name, issuer=body.issuer)
    debt = await flow.create_debt(storage, body.to_debt(), user.id, request_id)
    return ApiResponse(message="Debt added successfully", data=format_debt(debt))


@router.put("/debts/{debt_id}", response_model=ApiResponse, response_model_exclude_none=True)
async def update_debt(
    debt_id: str,
    body: DebtUpdateRequest,
    storage: LedgerStorageInterface = Depends(get_storage),
    user: UserAccount = Depends(get_current_user),
    flow: DebtFlow = Depends(get_debt_flow),
    request_id: str = Depends(get_request_id),
):
    debt = await flow.update_debt(storage, body.to_update(debt_id), user.id, request_id)
    return ApiResponse(message="Debt updated successfully", data=format_debt(debt))


@router.delete("/debts/{debt_id}")
async def delete_debt(
    debt_id: str,
    storage: LedgerStorageInterface = Depends(get_storage),
    user: UserAccount = Depends(get_current_user),
    flow: DebtFlow = Depends(get_debt_flow),
    request_id: str = Depends(get_request_id),
) -> dict[str, Any]:
    await flow.delete_debt(storage, debt_id, user.id, request_id)
    return {"success": True, "message": "Debt deleted successfully", "id": debt_id}


@router.get("/debts/summary", response_model=ApiResponse, response_model_exclude_none=True)
async def debts_summary(
    storage: LedgerStorageInterface = Depends(get_storage),
    flow: DebtFlow = Depends(get_debt_flow),
):
    """Summary of every debt: available credit, utilization, next dates."""
    items = await flow.debts_summary(storage)
    return ApiResponse(data=items, count=len(items))


@router.get(
    "/debts/{debt_id}/summary",
    response_model=ApiResponse,
    response_model_exclude_none=True,
)
async def debt_summary(
    debt_id: str,
    storage: LedgerStorageInterface = Depends(get_storage),
    flow: DebtFlow = Depends(get_debt_flow),
):
    return ApiResponse(data=await flow.debt_summary(storage, debt_id))


@router.get(
    "/debts/{debt_id}/installments",
    response_model=ApiResponse,
    response_model_exclude_none=True,
)
async def debt_installments(
    debt_id: str,
    months: int = Query(..., description="Number of monthly installments"),
    start: Optional[str] = Query(default=None, description="First payment date, YYYY-MM-DD"),
    storage: LedgerStorageInterface = Depends(get_storage),
    flow: DebtFlow = Depends(get_debt_flow),
):
    """Level-payment plan for the current balance."""
    plan = await flow.installment_plan(storage, debt_id, months, start)
    return ApiResponse(data=plan)


@router.post("/debts/{debt_id}/accrue")
async def accrue_debt(
    debt_id: str,
    period: Optional[str] = Query(default=None, description="Statement month, YYYY-MM"),
    date: Optional[str] = Query(default=None, description="Base date, YYYY-MM-DD"),
    recompute: bool = Query(default=False),
    storage: LedgerStorageInterface = Depends(get_storage),
    user: UserAccount = Depends(get_current_user),
    flow: DebtFlow = Depends(get_debt_flow),
    request_id: str = Depends(get_request_id),
) -> dict[str, Any]:
    """
    Close one billing cycle and record it in the credit history.

    Returns a skipped result when the cycle was already accrued and
    recompute is false.
    """
    logger.info(
        "debt_accrual_requested",
        debt_id=debt_id,
        period=period,
        date=date,
        recompute=recompute,
    )
    result = await flow.accrue(
        storage,
        debt_id,
        date=date,
        period=period,
        recompute=recompute,
        tenant_id=user.id,
        correlation_id=request_id,
    )
    return result.to_response()


@router.get("/debts/{debt_id}/statement-preview")
async def statement_preview(
    debt_id: str,
    period: Optional[str] = Query(default=None),
    date: Optional[str] = Query(default=None),
    recompute: bool = Query(default=False),
    storage: LedgerStorageInterface = Depends(get_storage),
    flow: DebtFlow = Depends(get_debt_flow),
) -> dict[str, Any]:
    """Compute a statement without persisting it."""
    preview = await flow.preview(
        storage,
        debt_id,
        date=date,
        period=period,
        recompute=recompute,
    )
    return preview.to_response()
