"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from attendance_payroll import __version__
from attendance_payroll.api.routes import health_router, payroll_runs_router
from attendance_payroll.config import get_settings
from attendance_payroll.database import dispose_db, init_db
from attendance_payroll.errors import (
    DuplicateRunError,
    PayrollConfigurationError,
    PayrollError,
    PayrollPeriodNotFoundError,
    PayrollRunNotFoundError,
)
from attendance_payroll.run_log import configure_logging
from attendance_payroll.services.state_machine import InvalidTransitionError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging(get_settings().log_level)
    init_db()
    yield
    await dispose_db()


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Attendance Payroll API",
        description="Attendance-aware payroll calculation core",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollRunNotFoundError)
    @app.exception_handler(PayrollPeriodNotFoundError)
    async def not_found_handler(request: Request, exc: PayrollError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "NOT_FOUND")

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, exc.reason or str(exc), "INVALID_TRANSITION")

    @app.exception_handler(DuplicateRunError)
    async def duplicate_run_handler(request: Request, exc: DuplicateRunError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "DUPLICATE_RUN")

    @app.exception_handler(PayrollConfigurationError)
    async def configuration_handler(request: Request, exc: PayrollConfigurationError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "CONFIGURATION_ERROR")

    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), "PAYROLL_ERROR")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred",
            "INTERNAL_ERROR",
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
