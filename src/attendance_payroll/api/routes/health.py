"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from attendance_payroll.api.dependencies import DbSession
from attendance_payroll.config import get_settings
from attendance_payroll.models import PayrollRun
from attendance_payroll.services.state_machine import PayrollRunStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    engine_version: str
    run_log: str
    runs_processing: int | None = None


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check database reachability and report runs stuck mid-processing."""
    settings = get_settings()
    runs_processing: int | None = None
    try:
        runs_processing = await db.scalar(
            select(func.count())
            .select_from(PayrollRun)
            .where(PayrollRun.run_status == PayrollRunStatus.PROCESSING.value)
        )
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    healthy = runs_processing is not None
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        database="healthy" if healthy else "unhealthy",
        engine_version=settings.engine_version,
        run_log="jsonl" if settings.run_log_dir else "disabled",
        runs_processing=runs_processing,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
