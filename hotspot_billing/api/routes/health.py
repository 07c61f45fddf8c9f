"""Health endpoints: database reachability and RouterOS session state."""

import logging
from typing import Optional

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from hotspot_billing.api.deps import DB, RouterManager
from hotspot_billing.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_error(db: AsyncSession) -> Optional[str]:
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database health probe failed: %s", e)
        return str(e)
    return None


@router.get("/health", response_model=dict)
async def health_check(db: DB, manager: RouterManager):
    """Overall status. The router is only reported, it never degrades the status."""
    error = await _database_error(db)
    return {
        "status": "ok" if error is None else "degraded",
        "service": settings.APP_NAME,
        "database": "healthy" if error is None else f"unhealthy: {error}",
        "router": manager.state.value,
    }


@router.get("/health/ready", response_model=dict)
async def readiness_check(db: DB, manager: RouterManager):
    """Ready once the database answers; the router connects lazily."""
    return {"ready": await _database_error(db) is None, "router_connected": manager.is_connected}


@router.get("/health/live", response_model=dict)
async def liveness_check():
    return {"alive": True}
