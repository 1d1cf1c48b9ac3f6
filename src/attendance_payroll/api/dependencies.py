"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_payroll.config import get_settings
from attendance_payroll.database import init_db
from attendance_payroll.run_log import PayrollEventLogger, build_event_logger


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency.

    Services commit their own units of work; the session is only closed here.
    """
    _, factory = init_db()
    async with factory() as session:
        yield session


async def get_client_id(
    x_client_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract client ID from header."""
    if not x_client_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Client-ID header is required",
        )
    try:
        return UUID(x_client_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Client-ID format",
        )


@lru_cache(maxsize=1)
def get_event_logger() -> PayrollEventLogger:
    """Process-wide event logger with the configured run-log sink."""
    return build_event_logger(get_settings().run_log_dir)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
ClientId = Annotated[UUID, Depends(get_client_id)]
EventLogger = Annotated[PayrollEventLogger, Depends(get_event_logger)]
