"""FastAPI application factory"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from finance_tracker import __version__
from finance_tracker.api.middleware import RequestIDMiddleware
from finance_tracker.api.v1 import debts
from finance_tracker.api.v1.schemas import ErrorResponse
from finance_tracker.audit import configure_logging
from finance_tracker.exceptions import FinanceTrackerError
from finance_tracker.orchestrator import AppComponents, create_app_components

logger = structlog.get_logger(__name__)


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        components: Prebuilt components; built from settings when omitted
    """
    components = components or create_app_components()
    configure_logging(components.settings.app.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        components.scheduler.start()
        yield
        components.scheduler.stop()

    app = FastAPI(
        title="Finance Tracker",
        description="Debt tracking and credit statement accrual",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.components = components

    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(FinanceTrackerError)
    async def handle_domain_error(request: Request, exc: FinanceTrackerError):
        if exc.status_code >= 500:
            logger.error("request_failed", error=exc.message, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message).model_dump(exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="Invalid request parameters", details=details).model_dump(),
        )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "finance-tracker", "version": __version__}

    app.include_router(debts.router, prefix="/api", tags=["debts"])

    return app
