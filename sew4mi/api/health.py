"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sew4mi.infrastructure.config import settings

router = APIRouter()

logger = structlog.get_logger()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="sew4mi-escrow",
        version=settings.api_version,
    )


@router.get("/ready", response_model=None)
async def readiness_check() -> dict[str, str] | JSONResponse:
    """Check if service is ready to accept requests.

    With the database backend the database must answer ``SELECT 1``.

    Returns:
        Readiness status, or 503 when the database is unreachable.
    """
    if settings.persistence_backend != "database":
        return {"status": "ready", "persistence": "memory"}

    from sew4mi.infrastructure.database import engine

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database not reachable", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "persistence": "database"},
        )
    return {"status": "ready", "persistence": "database"}
