"""FastAPI application entry point for Eventspace.

Workspace lifecycle routers, event hooks, and the in-process dissolution
scheduler started with the application.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from eventspace.api.events import router as events_router
from eventspace.api.lifecycle import router as lifecycle_router
from eventspace.api.workspaces import router as workspaces_router
from eventspace.api.workspaces import templates_router
from eventspace.config.settings import get_settings
from eventspace.db.session import async_session_factory
from eventspace.lifecycle.errors import WorkspaceError
from eventspace.lifecycle.locks import WorkspaceLocks
from eventspace.lifecycle.scheduler import DissolutionScheduler
from eventspace.lifecycle.wiring import make_sweep_runner

APP_VERSION = "0.1.0"

settings = get_settings()

_LOG_NAME_TO_LEVEL: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# --- Structured logging ---
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == "dev"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value],
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)
logging.basicConfig(level=_LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value])

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

# --- Process-wide lifecycle state ---
workspace_locks = WorkspaceLocks()
dissolution_scheduler = DissolutionScheduler(
    make_sweep_runner(async_session_factory, workspace_locks),
    interval_seconds=settings.sweep_interval_seconds,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    if settings.DISSOLUTION_SCHEDULER_ENABLED:
        await dissolution_scheduler.start()
    else:
        logger.info("dissolution_scheduler_disabled")
    try:
        yield
    finally:
        await dissolution_scheduler.stop()


# --- FastAPI app ---
app = FastAPI(
    title="Eventspace API",
    description="Event workspace provisioning and lifecycle management.",
    version=APP_VERSION,
    lifespan=lifespan,
)
app.state.workspace_locks = workspace_locks
app.state.dissolution_scheduler = dissolution_scheduler

# --- CORS middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.ENVIRONMENT == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkspaceError)
async def workspace_error_handler(_request: Request, exc: WorkspaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("workspace_operation_failed", error=str(exc))
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


# --- Routers ---
app.include_router(workspaces_router)
app.include_router(templates_router)
app.include_router(lifecycle_router)
app.include_router(events_router)


# --- Infrastructure Endpoints (global) ---


@app.get("/health")
async def health_check() -> dict:
    """Liveness probe with component health checks.

    Returns 200 always (degraded status if components are down).
    """
    checks: dict[str, bool] = {"api": True}

    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception:
        checks["database"] = False

    all_ok = all(checks.values())

    return {
        "status": "ok" if all_ok else "degraded",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
        "checks": checks,
        "scheduler_running": dissolution_scheduler.running,
    }


@app.get("/api/version")
async def get_version() -> dict[str, str]:
    """Return application name, version, and environment."""
    return {
        "name": "Eventspace",
        "version": APP_VERSION,
        "environment": settings.ENVIRONMENT.value,
    }
