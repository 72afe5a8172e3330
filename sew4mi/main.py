"""Sew4Mi escrow API main application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sew4mi.api.cron import router as cron_router
from sew4mi.api.errors import status_for
from sew4mi.api.escrow import router as escrow_router
from sew4mi.api.health import router as health_router
from sew4mi.api.middleware import setup_middleware
from sew4mi.api.milestones import router as milestones_router
from sew4mi.domain.exceptions import DomainError
from sew4mi.infrastructure.config import settings
from sew4mi.infrastructure.logging_config import configure_logging

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    logger.info(
        "Starting Sew4Mi escrow API",
        version=settings.api_version,
        debug=settings.debug,
        persistence_backend=settings.persistence_backend,
        rate_limit_backend="redis" if settings.redis_url else "memory",
        payment_release="http" if settings.payment_release_url else "local",
    )

    yield

    if settings.persistence_backend == "database":
        from sew4mi.infrastructure.database import engine

        await engine.dispose()

    logger.info("Shutting down Sew4Mi escrow API")


app = FastAPI(
    title="Sew4Mi Escrow API",
    description="Escrow payment stages and milestone approval for tailoring orders",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware (must be added before custom middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware (request ID, API key auth, error handling)
setup_middleware(app)

# Include routers
app.include_router(health_router, tags=["Health"])
app.include_router(escrow_router)
app.include_router(milestones_router)
app.include_router(cron_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Handle domain errors that escaped a route."""
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_for(exc),
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
            "request_id": request_id,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": [],
            "request_id": request_id,
        },
    )


def main() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "sew4mi.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
