"""Tests for the sweep runner that the scheduler drives in production."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker
from uuid_extensions import uuid7

from eventspace.db.tables import WorkspaceRow
from eventspace.lifecycle.locks import WorkspaceLocks
from eventspace.lifecycle.wiring import build_lifecycle_services, make_sweep_runner
from eventspace.models.common import DissolutionReason, EventStatus, WorkspaceStatus
from eventspace.models.workspace import WorkspacePatch, WorkspaceSettingsPatch
from eventspace.repositories.events import EventRepository

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


class TestMakeSweepRunner:
    @pytest.mark.anyio
    async def test_sweep_commits_in_own_session(self, db_engine) -> None:
        factory = async_sessionmaker(db_engine, expire_on_commit=False)
        locks = WorkspaceLocks()
        organizer = uuid7()

        async with factory() as session:
            event = await EventRepository(session).create(
                event_id=uuid7(), name="Meetup", organizer_id=organizer,
                start_date=NOW - timedelta(days=12), end_date=NOW - timedelta(days=10),
                status=EventStatus.COMPLETED,
            )
            ops = build_lifecycle_services(session, locks, clock=lambda: NOW).operations
            row = await ops.provision(event.event_id, organizer)
            await ops.update_workspace(
                row.workspace_id, organizer,
                WorkspacePatch(settings=WorkspaceSettingsPatch(retention_period_days=7)),
            )
            await ops.mark_winding_down(row.workspace_id)
            await session.commit()
            workspace_id = row.workspace_id

        run_sweep = make_sweep_runner(factory, locks, clock=lambda: NOW)
        report = await run_sweep()
        assert report.dissolved == [workspace_id]

        async with factory() as session:
            stored = await session.get(WorkspaceRow, workspace_id)
            assert stored.status == WorkspaceStatus.DISSOLVED
            assert stored.dissolution_reason == DissolutionReason.RETENTION_EXPIRED

    @pytest.mark.anyio
    async def test_failed_sweep_rolls_back(self, db_engine, monkeypatch) -> None:
        factory = async_sessionmaker(db_engine, expire_on_commit=False)

        async def broken(self):
            raise RuntimeError("boom")

        monkeypatch.setattr(
            "eventspace.lifecycle.orchestrator.LifecycleOrchestrator.sweep_scheduled_dissolutions",
            broken,
        )
        run_sweep = make_sweep_runner(factory, WorkspaceLocks())
        with pytest.raises(RuntimeError):
            await run_sweep()
