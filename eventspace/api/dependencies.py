"""FastAPI dependency injection factories.

Session-bound lifecycle services are built per request around the request's
Unit-of-Work session. The lock registry and the scheduler are process-wide
and live on app.state.
"""

from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from eventspace.config.settings import Settings, get_settings
from eventspace.db.session import get_async_session
from eventspace.lifecycle.bridge import EventLifecycleBridge
from eventspace.lifecycle.locks import WorkspaceLocks
from eventspace.lifecycle.operations import WorkspaceOperations
from eventspace.lifecycle.orchestrator import LifecycleOrchestrator
from eventspace.lifecycle.scheduler import DissolutionScheduler
from eventspace.lifecycle.wiring import LifecycleServices, build_lifecycle_services
from eventspace.repositories.workspace import WorkspaceTemplateRepository

# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


async def get_current_user_id(
    x_user_id: str | None = Header(default=None),
) -> UUID:
    """Authenticated user id, set by the auth middleware in front of the service."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated.")
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user identity.") from None


# ---------------------------------------------------------------------------
# Process-wide
# ---------------------------------------------------------------------------


def get_workspace_locks(request: Request) -> WorkspaceLocks:
    return request.app.state.workspace_locks


def get_scheduler(request: Request) -> DissolutionScheduler:
    return request.app.state.dissolution_scheduler


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


async def get_lifecycle_services(
    session: AsyncSession = Depends(get_async_session),
    locks: WorkspaceLocks = Depends(get_workspace_locks),
    settings: Settings = Depends(get_settings),
) -> LifecycleServices:
    return build_lifecycle_services(
        session, locks, default_retention_days=settings.DEFAULT_RETENTION_PERIOD_DAYS,
    )


async def get_workspace_operations(
    services: LifecycleServices = Depends(get_lifecycle_services),
) -> WorkspaceOperations:
    return services.operations


async def get_orchestrator(
    services: LifecycleServices = Depends(get_lifecycle_services),
) -> LifecycleOrchestrator:
    return services.orchestrator


async def get_event_bridge(
    services: LifecycleServices = Depends(get_lifecycle_services),
) -> EventLifecycleBridge:
    return services.bridge


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


async def get_template_repo(
    session: AsyncSession = Depends(get_async_session),
) -> WorkspaceTemplateRepository:
    return WorkspaceTemplateRepository(session)
