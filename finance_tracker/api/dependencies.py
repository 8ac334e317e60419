"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Depends, Header, Request

from finance_tracker.exceptions import BadRequestError, UnauthorizedError
from finance_tracker.models.debt import UserAccount
from finance_tracker.orchestrator import AppComponents, DebtFlow
from finance_tracker.services.storage import LedgerStorageInterface


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_components(request: Request) -> AppComponents:
    """Components built at startup and attached to the app"""
    return request.app.state.components


def get_debt_flow(components: AppComponents = Depends(get_components)) -> DebtFlow:
    return components.debt_flow


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    components: AppComponents = Depends(get_components),
) -> UserAccount:
    """
    Resolve the tenant from the X-User-Id header.

    Raises:
        UnauthorizedError: If the header is missing or the user is unknown
    """
    if not x_user_id:
        raise UnauthorizedError("Missing X-User-Id header")
    user = await components.directory.get_user(x_user_id)
    if user is None:
        raise UnauthorizedError("Unknown user")
    return user


def get_storage(
    user: UserAccount = Depends(get_current_user),
    components: AppComponents = Depends(get_components),
) -> LedgerStorageInterface:
    """Open the tenant's ledger"""
    if not user.has_linked_storage:
        raise BadRequestError("User has no linked spreadsheet")
    return components.storage_factory(user, user.access_token)
