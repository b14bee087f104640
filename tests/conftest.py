"""Shared pytest fixtures for the Eventspace test suite.

Provides:
- db_engine: in-memory SQLite async engine with all tables
- db_session: transaction-isolated async session (app commits become SAVEPOINT releases)
- client: AsyncClient with dependency overrides for DB-backed testing
- seed_event: factory inserting an event row owned by the event component
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool
from uuid_extensions import uuid7

from eventspace.api.dependencies import get_scheduler, get_workspace_locks
from eventspace.db.session import Base, get_async_session
from eventspace.db.tables import EventRow
import eventspace.db.tables  # noqa: F401  register ORM models on Base.metadata
from eventspace.lifecycle.locks import WorkspaceLocks
from eventspace.lifecycle.scheduler import DissolutionScheduler
from eventspace.lifecycle.wiring import build_lifecycle_services
from eventspace.models.common import EventStatus
from eventspace.models.workspace import SweepReport
from eventspace.repositories.events import EventRepository

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with all tables.

    pysqlite defers BEGIN, which breaks SAVEPOINT nesting; the driver's own
    transaction handling is disabled and BEGIN is emitted explicitly.
    """
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Provide a session inside an outer transaction that is never committed.

    Application code calling session.commit() releases a SAVEPOINT instead,
    so nested SAVEPOINTs used by the lifecycle code behave as in production.
    """
    async with db_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(
            bind=conn,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture
def locks() -> WorkspaceLocks:
    return WorkspaceLocks()


@pytest.fixture
def seed_event(db_session: AsyncSession) -> Callable[..., Awaitable[EventRow]]:
    """Insert an event. Defaults to a PUBLISHED event that already ended."""

    async def _seed(
        *,
        organizer_id: UUID | None = None,
        status: EventStatus = EventStatus.PUBLISHED,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        name: str = "Spring Hackathon",
    ) -> EventRow:
        end = end_date or NOW - timedelta(days=1)
        return await EventRepository(db_session).create(
            event_id=uuid7(),
            name=name,
            organizer_id=organizer_id or uuid7(),
            start_date=start_date or end - timedelta(days=2),
            end_date=end,
            status=status,
        )

    return _seed


@pytest.fixture
async def client(db_session, locks):
    """AsyncClient with the session, lock registry and scheduler overridden.

    The scheduler sweeps through the test session so manual triggers see
    the same data as the requests.
    """
    from eventspace.api.main import app

    async def _override_session():
        yield db_session

    async def _sweep() -> SweepReport:
        services = build_lifecycle_services(db_session, locks)
        return await services.orchestrator.sweep_scheduled_dissolutions()

    scheduler = DissolutionScheduler(_sweep, interval_seconds=3600)

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_workspace_locks] = lambda: locks
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
