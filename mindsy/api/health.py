"""Health check route."""

import redis
from fastapi import APIRouter, Depends
from sqlalchemy import text

from mindsy.api.deps import get_storage_service
from mindsy.config import get_settings
from mindsy.db.session import engine
from mindsy.schemas.schemas import HealthResponse
from mindsy.services.storage import StorageService

router = APIRouter(tags=["System"])

settings = get_settings()

APP_VERSION = "1.0.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the service and its dependencies.",
)
async def health_check(storage: StorageService = Depends(get_storage_service)):
    """
    Health check endpoint.

    Returns the status of:
    - Database connection
    - Redis connection
    - Object storage connection
    """
    redis_status = "ok"
    try:
        r = redis.from_url(settings.redis_url, socket_connect_timeout=2)
        r.ping()
    except Exception:
        redis_status = "error"

    storage_status = "ok" if storage.health_check() else "error"

    db_status = "ok"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        db_status = "error"

    overall_status = "healthy"
    if any(s == "error" for s in [redis_status, storage_status, db_status]):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=APP_VERSION,
        database=db_status,
        redis=redis_status,
        storage=storage_status,
    )
