"""Builds the lifecycle component graph.

Process-wide pieces (lock registry, notifier, scheduler) are created once at
startup. Session-bound pieces (store, operations, orchestrator) are built per
request or per sweep tick around that tick's session.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventspace.lifecycle.bridge import EventLifecycleBridge
from eventspace.lifecycle.locks import WorkspaceLocks
from eventspace.lifecycle.notifications import WorkspaceNotifier
from eventspace.lifecycle.operations import WorkspaceOperations
from eventspace.lifecycle.orchestrator import LifecycleOrchestrator
from eventspace.models.common import utc_now
from eventspace.models.workspace import DEFAULT_RETENTION_PERIOD_DAYS, SweepReport
from eventspace.repositories.workspace import WorkspaceStore


@dataclass
class LifecycleServices:
    store: WorkspaceStore
    operations: WorkspaceOperations
    orchestrator: LifecycleOrchestrator
    bridge: EventLifecycleBridge


def build_lifecycle_services(
    session: AsyncSession,
    locks: WorkspaceLocks,
    *,
    notifier: WorkspaceNotifier | None = None,
    default_retention_days: int = DEFAULT_RETENTION_PERIOD_DAYS,
    clock: Callable[[], datetime] = utc_now,
) -> LifecycleServices:
    store = WorkspaceStore(session)
    operations = WorkspaceOperations(
        store=store,
        locks=locks,
        notifier=notifier,
        default_retention_days=default_retention_days,
        clock=clock,
    )
    orchestrator = LifecycleOrchestrator(operations=operations, store=store, clock=clock)
    return LifecycleServices(
        store=store,
        operations=operations,
        orchestrator=orchestrator,
        bridge=EventLifecycleBridge(orchestrator),
    )


def make_sweep_runner(
    session_factory: async_sessionmaker[AsyncSession],
    locks: WorkspaceLocks,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> Callable[[], Awaitable[SweepReport]]:
    """Return a callable that runs one sweep in its own committed session."""

    async def run_sweep() -> SweepReport:
        async with session_factory() as session:
            try:
                services = build_lifecycle_services(session, locks, clock=clock)
                report = await services.orchestrator.sweep_scheduled_dissolutions()
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        return report

    return run_sweep
