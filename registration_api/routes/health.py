"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter, Depends

from registration_api.db.pool import DatabasePoolManager
from registration_api.dependencies import (
    get_db_pool,
    get_notification_queue,
    get_redis_client,
    get_settings,
)
from registration_api.config import Settings
from registration_api.services.notifications.queue import NotificationQueue
from registration_api.services.redis_client import RedisClient

router = APIRouter()

SERVICE_NAME = "msme-clinic-registration"


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/readyz")
async def readyz(
    settings: Settings = Depends(get_settings),
    db_pool: DatabasePoolManager | None = Depends(get_db_pool),
    redis_client: RedisClient | None = Depends(get_redis_client),
    queue: NotificationQueue = Depends(get_notification_queue),
):
    """
    Readiness check across the store, the rate-limit backend and notifications.

    Redis is optional (the limiter fails open), so a missing Redis is reported
    but doesn't make the service unready.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    if db_pool is None:
        checks["database"] = {"ok": False, "error": "Database pool not configured"}
        overall_ok = False
    else:
        db_health = await db_pool.health_check()
        is_healthy = bool(db_health.get("healthy", False))
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "pool_stats" in db_health:
            checks["database"]["pool"] = db_health["pool_stats"]
        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
        overall_ok = overall_ok and is_healthy

    # 2) Redis (rate limiting)
    t0 = time.time()
    if redis_client is None:
        checks["redis"] = {"ok": True, "configured": False}
    else:
        redis_ok = await redis_client.ping()
        checks["redis"] = {
            "ok": redis_ok,
            "configured": True,
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "fail_open": settings.RATE_LIMIT_FAIL_OPEN,
        }
        if not settings.RATE_LIMIT_FAIL_OPEN:
            overall_ok = overall_ok and redis_ok

    # 3) Notifications
    queue_status = queue.status()
    checks["notifications"] = {
        "ok": True,
        "channels": queue_status["channels"],
        "log_only": queue_status["channels"] == ["log"],
        "queued": queue_status["queued"],
        "failed": queue_status["failed"],
    }

    return {
        "overall_ok": overall_ok,
        "checks": checks,
        "environment": settings.environment,
        "timestamp": time.time(),
    }
