"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from sew4mi.api.cron import router as cron_router
from sew4mi.api.escrow import router as escrow_router
from sew4mi.api.health import router as health_router
from sew4mi.api.milestones import router as milestones_router

__all__ = [
    "cron_router",
    "escrow_router",
    "health_router",
    "milestones_router",
]
