import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ideavault.core.logging import SERVICE_NAME
from ideavault.db import ping_db, ping_redis

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe. Returns 503 while draining after SIGTERM."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(status_code=503, content={"status": "shutting_down", "service": SERVICE_NAME})
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check():
    """Readiness probe: the session store and the lease backend must both answer."""
    checks = {}
    for name, ping in (("database", ping_db), ("redis", ping_redis)):
        try:
            await ping()
            checks[name] = True
        except Exception as e:
            logger.error("readiness_check_failed", dependency=name, error=str(e), error_type=type(e).__name__)
            checks[name] = False

    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
