"""Simple health and readiness endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies.db import get_app_resources
from app.core.resources import Resources

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "property-importer-api"


@router.get("/live", summary="Liveness probe")
async def live() -> dict[str, str]:
    """Indicates API process is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/ready", summary="Readiness probe")
def ready(resources: Resources = Depends(get_app_resources)) -> dict[str, Any]:
    """Check readiness of dependencies (database, Redis, Celery broker).

    A broker outage is reported but does not fail readiness, since intake
    fails loudly on publish anyway.
    """
    checks: dict[str, Any] = {
        "status": "ok",
        "service": SERVICE_NAME,
        "checks": {},
    }
    all_healthy = True

    try:
        with resources.engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        checks["checks"]["database"] = {
            "status": "healthy",
            "message": "Database connection successful",
        }
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        checks["checks"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
        }
        all_healthy = False

    try:
        resources.redis.ping()
        checks["checks"]["redis"] = {
            "status": "healthy",
            "message": "Redis connection successful",
        }
    except RedisError as e:
        logger.error(f"Redis health check failed: {e}", exc_info=True)
        checks["checks"]["redis"] = {
            "status": "unhealthy",
            "message": f"Redis connection failed: {str(e)}",
        }
        all_healthy = False

    if resources.broker_redis is None:
        checks["checks"]["celery_broker"] = checks["checks"]["redis"]
    else:
        try:
            resources.broker_redis.ping()
            checks["checks"]["celery_broker"] = {
                "status": "healthy",
                "message": "Celery broker connection successful",
            }
        except RedisError as e:
            logger.warning(f"Celery broker health check failed: {e}", exc_info=True)
            checks["checks"]["celery_broker"] = {
                "status": "unhealthy",
                "message": f"Celery broker connection failed: {str(e)}",
            }

    if not all_healthy:
        checks["status"] = "unhealthy"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=checks,
        )

    return checks
