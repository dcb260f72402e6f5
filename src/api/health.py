"""Health check endpoint for infrastructure verification."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_db, get_redis
from src.core.logging import get_logger
from src.core.redis import check_redis_health
from src.models.permission import Permission

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    db: str
    redis: str
    permissions: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """Check database, Redis, and whether the permission catalog is seeded.

    An unseeded catalog denies every non-admin request, so it degrades
    health the same way a lost connection does. Redis only carries cache
    invalidations; losing it does not degrade the service.
    """
    try:
        result = await db.execute(select(func.count(Permission.id)))
        permission_count = int(result.scalar() or 0)
        db_status = "connected"
        permissions_status = "seeded" if permission_count else "empty"
    except Exception as e:
        logger.exception("database_health_check_failed", error=str(e))
        db_status = "disconnected"
        permissions_status = "unknown"

    redis_pool = await get_redis(request)
    redis_healthy = await check_redis_health(redis_pool)
    redis_status = "connected" if redis_healthy else "disconnected"

    healthy = db_status == "connected" and permissions_status == "seeded"
    return HealthResponse(
        status="ok" if healthy else "degraded",
        db=db_status,
        redis=redis_status,
        permissions=permissions_status,
    )
