"""Ideas Vault Backend: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# CRITICAL ORDER: configure_structlog MUST be called before all other ideavault imports
# (structlog caches the processor chain on first use).
from ideavault.core.logging import configure_structlog
from ideavault.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ideavault.agent.model_client_anthropic import close_shared_model_client
from ideavault.api.routes import api_router
from ideavault.core.config import get_settings
from ideavault.core.exceptions import (
    ConcurrencyConflictError,
    IdeaVaultError,
    ModelRequestFailedError,
    SessionNotActiveError,
    SessionNotFoundError,
    StorageError,
    SynthesisFailedError,
    SynthesisParseError,
)
from ideavault.db import init_db, close_db, init_redis, close_redis
from ideavault.middleware.correlation import (
    setup_correlation_middleware,
    get_correlation_id,
)

logger = structlog.get_logger(__name__)

# Domain error -> (HTTP status, machine-readable code)
ERROR_STATUS: dict[type[IdeaVaultError], tuple[int, str]] = {
    SessionNotFoundError: (404, "session_not_found"),
    SessionNotActiveError: (409, "session_not_active"),
    ConcurrencyConflictError: (409, "concurrency_conflict"),
    StorageError: (503, "storage_unavailable"),
    ModelRequestFailedError: (502, "model_request_failed"),
    SynthesisFailedError: (422, "synthesis_failed"),
    SynthesisParseError: (422, "synthesis_failed"),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM flips this so the health check returns 503 while connections drain
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    await init_db()
    logger.info("db_initialized")

    await init_redis()
    logger.info("redis_initialized")

    yield

    logger.info("shutdown_begin")
    await close_shared_model_client()
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


def status_for(exc: IdeaVaultError) -> tuple[int, str]:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500, "internal_error"


async def ideavault_exception_handler(request: Request, exc: IdeaVaultError) -> JSONResponse:
    """Map domain errors to HTTP responses with debug_id tracking."""
    debug_id = str(uuid.uuid4())
    status_code, code = status_for(exc)

    logger.warning(
        "domain_error",
        status_code=status_code,
        code=code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )

    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "debug_id": debug_id, "code": code},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking.

    Logs errors server-side with full context, returns sanitized response to client.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors.

    Logs full exception with traceback, returns generic 500 to client.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(IdeaVaultError)(ideavault_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Ideas Vault - guided discovery of startup ideas",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(dict.fromkeys([settings.frontend_url, *settings.cors_allowed_origins])),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ideavault.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
