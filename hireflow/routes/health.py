# hireflow/routes/health.py
"""
Health check endpoints with key-value store and database pool checks.
"""

import time

from fastapi import APIRouter, Request

from hireflow.config import settings
from hireflow.infrastructure.observability.logging import log_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "hireflow"}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Readiness check with all dependencies.

    The database is only required when it is configured or when campaigns
    are stored in it.
    """
    checks = {}
    overall_ok = True

    # 1) Key-value store
    t0 = time.time()
    kv_ok = await request.app.state.kv.ping()
    checks["kv_store"] = {"ok": kv_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
    log_health_check("kv_store", kv_ok, checks["kv_store"]["latency_ms"])
    overall_ok = overall_ok and kv_ok

    # 2) Database pool
    db = request.app.state.db
    database_required = settings.database_configured or settings.STORAGE_BACKEND == "database"
    if db is None:
        checks["database"] = {"ok": not database_required, "mode": "development"}
        overall_ok = overall_ok and not database_required
    else:
        t0 = time.time()
        db_health = await db.health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "pool_stats" in db_health:
            checks["database"]["pool_stats"] = db_health["pool_stats"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
        log_health_check(
            "database",
            is_healthy,
            checks["database"]["latency_ms"],
            error=checks["database"].get("error"),
        )
        overall_ok = overall_ok and is_healthy

    # 3) Configuration
    config_issues = []
    if not settings.GOOGLE_CLIENT_ID:
        config_issues.append("GOOGLE_CLIENT_ID not set")
    if settings.STORAGE_BACKEND == "database" and not settings.database_configured:
        config_issues.append("STORAGE_BACKEND=database without DATABASE_URL")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
        "storage_backend": settings.STORAGE_BACKEND,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
