"""Tests for LifecycleOrchestrator: event hooks, validation, status, retention sweep."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from uuid_extensions import uuid7

import eventspace.lifecycle.orchestrator as orchestrator_module
from eventspace.db.tables import WorkspaceRow
from eventspace.lifecycle.errors import InvalidStateError
from eventspace.lifecycle.locks import WorkspaceLocks
from eventspace.lifecycle.notifications import WorkspaceNotifier
from eventspace.lifecycle.orchestrator import LifecycleOrchestrator
from eventspace.lifecycle.wiring import LifecycleServices, build_lifecycle_services
from eventspace.models.common import (
    DissolutionReason,
    EventStatus,
    MemberStatus,
    WorkspaceRole,
    WorkspaceStatus,
)
from eventspace.models.workspace import WorkspacePatch, WorkspaceSettingsPatch

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)
ORGANIZER = uuid7()


class Clock:
    """Settable clock shared by every component under test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def services(db_session: AsyncSession, locks: WorkspaceLocks, clock: Clock) -> LifecycleServices:
    return build_lifecycle_services(db_session, locks, clock=clock)


@pytest.fixture
def orchestrator(services: LifecycleServices) -> LifecycleOrchestrator:
    return services.orchestrator


async def _provisioned(services: LifecycleServices, seed_event, **event_kwargs) -> WorkspaceRow:
    event = await seed_event(organizer_id=ORGANIZER, **event_kwargs)
    return await services.operations.provision(event.event_id, ORGANIZER)


async def _winding_down(services: LifecycleServices, seed_event, *, retention: int,
                        **event_kwargs) -> WorkspaceRow:
    row = await _provisioned(services, seed_event, **event_kwargs)
    await services.operations.update_workspace(
        row.workspace_id, ORGANIZER,
        WorkspacePatch(settings=WorkspaceSettingsPatch(retention_period_days=retention)),
    )
    await services.operations.mark_winding_down(row.workspace_id)
    return row


# ===================================================================
# Transition validation
# ===================================================================


class TestValidateTransition:
    @pytest.mark.anyio
    async def test_dissolved_to_active_invalid(self, orchestrator, services, seed_event) -> None:
        row = await _provisioned(services, seed_event)
        result = await orchestrator.validate_transition(
            row.workspace_id, WorkspaceStatus.DISSOLVED, WorkspaceStatus.ACTIVE,
        )
        assert result.valid is False
        assert "Invalid transition" in result.reason

    @pytest.mark.anyio
    async def test_active_to_winding_down_valid(self, orchestrator, services,
                                                seed_event) -> None:
        row = await _provisioned(services, seed_event)
        result = await orchestrator.validate_transition(
            row.workspace_id, "ACTIVE", "WINDING_DOWN",
        )
        assert result.valid is True
        assert result.reason is None

    @pytest.mark.anyio
    async def test_dissolve_requires_event_over(self, orchestrator, services,
                                                seed_event) -> None:
        row = await _provisioned(services, seed_event, end_date=NOW + timedelta(days=3))
        result = await orchestrator.validate_transition(
            row.workspace_id, WorkspaceStatus.ACTIVE, WorkspaceStatus.DISSOLVED,
        )
        assert result.valid is False
        assert result.reason == (
            "Cannot dissolve workspace before event completion or cancellation"
        )

    @pytest.mark.anyio
    async def test_cancelled_event_may_dissolve(self, orchestrator, services,
                                                seed_event) -> None:
        row = await _provisioned(services, seed_event, status=EventStatus.CANCELLED,
                                 end_date=NOW + timedelta(days=3))
        result = await orchestrator.validate_transition(
            row.workspace_id, WorkspaceStatus.ACTIVE, WorkspaceStatus.DISSOLVED,
        )
        assert result.valid is True

    @pytest.mark.anyio
    async def test_missing_workspace(self, orchestrator) -> None:
        result = await orchestrator.validate_transition(
            uuid7(), WorkspaceStatus.WINDING_DOWN, WorkspaceStatus.DISSOLVED,
        )
        assert result.valid is False
        assert result.reason == "Workspace not found"

    @pytest.mark.anyio
    async def test_event_reader_is_injectable(self, services, seed_event, clock) -> None:
        class NoEvents:
            async def get(self, event_id):
                return None

        row = await _provisioned(services, seed_event)
        orchestrator = LifecycleOrchestrator(
            operations=services.operations, store=services.store, events=NoEvents(), clock=clock,
        )
        result = await orchestrator.validate_transition(
            row.workspace_id, WorkspaceStatus.ACTIVE, WorkspaceStatus.DISSOLVED,
        )
        assert result.reason == "Event not found"


# ===================================================================
# Event hooks
# ===================================================================


class TestOnEventCreated:
    @pytest.mark.anyio
    async def test_auto_provisions(self, orchestrator, services, seed_event) -> None:
        event = await seed_event(organizer_id=ORGANIZER)
        row = await orchestrator.on_event_created(event.event_id, ORGANIZER)

        assert row is not None
        assert row.status == WorkspaceStatus.ACTIVE
        members = await services.store.members.list_by_workspace(row.workspace_id)
        assert [m.role for m in members] == [WorkspaceRole.WORKSPACE_OWNER]
        assert len(await services.store.channels.list_by_workspace(row.workspace_id)) == 3

    @pytest.mark.anyio
    async def test_twice_creates_one_workspace(self, orchestrator, seed_event,
                                               db_session: AsyncSession) -> None:
        event = await seed_event(organizer_id=ORGANIZER)
        first = await orchestrator.on_event_created(event.event_id, ORGANIZER)
        second = await orchestrator.on_event_created(event.event_id, ORGANIZER)

        assert second.workspace_id == first.workspace_id
        count = await db_session.scalar(
            select(func.count()).select_from(WorkspaceRow)
            .where(WorkspaceRow.event_id == event.event_id)
        )
        assert count == 1

    @pytest.mark.anyio
    async def test_failure_is_swallowed(self, orchestrator, seed_event,
                                        db_session: AsyncSession) -> None:
        event = await seed_event(organizer_id=ORGANIZER)
        # Not the organizer: provision raises, the hook must not.
        assert await orchestrator.on_event_created(event.event_id, uuid7()) is None
        assert await orchestrator.on_event_created(uuid7(), ORGANIZER) is None
        # The caller's transaction is still usable.
        count = await db_session.scalar(select(func.count()).select_from(WorkspaceRow))
        assert count == 0


class TestOnEventStatusChanged:
    @pytest.mark.anyio
    async def test_completed_moves_to_winding_down(self, orchestrator, services,
                                                   seed_event) -> None:
        row = await _provisioned(services, seed_event)
        await orchestrator.on_event_status_changed(
            row.event_id, EventStatus.COMPLETED, EventStatus.ONGOING,
        )
        assert row.status == WorkspaceStatus.WINDING_DOWN
        assert row.dissolved_at is None

    @pytest.mark.anyio
    async def test_completed_leaves_non_active_alone(self, orchestrator, services,
                                                     seed_event) -> None:
        row = await _provisioned(services, seed_event)
        await services.operations.dissolve(row.workspace_id, ORGANIZER)
        await orchestrator.on_event_status_changed(
            row.event_id, EventStatus.COMPLETED, EventStatus.ONGOING,
        )
        assert row.status == WorkspaceStatus.DISSOLVED

    @pytest.mark.anyio
    async def test_cancelled_dissolves_and_revokes(self, orchestrator, services,
                                                   seed_event) -> None:
        row = await _provisioned(services, seed_event, end_date=NOW + timedelta(days=10))
        await services.operations.add_member(
            row.workspace_id, ORGANIZER, uuid7(), WorkspaceRole.TEAM_LEAD,
        )
        await orchestrator.on_event_status_changed(
            row.event_id, EventStatus.CANCELLED, EventStatus.PUBLISHED,
        )

        assert row.status == WorkspaceStatus.DISSOLVED
        assert row.dissolution_reason == DissolutionReason.CANCELLED
        members = await services.store.members.list_by_workspace(row.workspace_id)
        assert len(members) == 2
        assert all(m.status == MemberStatus.INACTIVE for m in members)
        assert all(m.left_at is not None for m in members)

    @pytest.mark.anyio
    async def test_uncancel_restores_workspace(self, orchestrator, services, seed_event,
                                               clock: Clock) -> None:
        row = await _provisioned(services, seed_event, end_date=NOW + timedelta(days=10))
        wid = row.workspace_id
        lead = await services.operations.add_member(
            wid, ORGANIZER, uuid7(), WorkspaceRole.TEAM_LEAD,
        )
        early = await services.operations.add_member(
            wid, ORGANIZER, uuid7(), WorkspaceRole.GENERAL_VOLUNTEER,
        )
        clock.now = NOW - timedelta(hours=1)
        await services.operations.handle_early_departure(wid, early.user_id, ORGANIZER)
        clock.now = NOW

        await orchestrator.on_event_status_changed(
            row.event_id, EventStatus.CANCELLED, EventStatus.PUBLISHED,
        )
        assert row.status == WorkspaceStatus.DISSOLVED

        clock.now = NOW + timedelta(hours=2)
        await orchestrator.on_event_status_changed(
            row.event_id, EventStatus.PUBLISHED, EventStatus.CANCELLED,
        )

        assert row.status == WorkspaceStatus.ACTIVE
        assert row.dissolved_at is None
        assert row.dissolution_reason is None
        owner = await services.store.members.get_membership(wid, ORGANIZER)
        assert owner.status == MemberStatus.ACTIVE
        assert lead.status == MemberStatus.ACTIVE
        assert early.status == MemberStatus.INACTIVE

    @pytest.mark.anyio
    async def test_uncancel_never_reverses_other_dissolutions(
        self, orchestrator, services, seed_event,
    ) -> None:
        row = await _provisioned(services, seed_event)
        await services.operations.dissolve(row.workspace_id, ORGANIZER)
        await orchestrator.on_event_status_changed(
            row.event_id, EventStatus.CANCELLED, EventStatus.COMPLETED,
        )
        await orchestrator.on_event_status_changed(
            row.event_id, EventStatus.PUBLISHED, EventStatus.CANCELLED,
        )
        assert row.status == WorkspaceStatus.DISSOLVED
        assert row.dissolution_reason == DissolutionReason.MANUAL

    @pytest.mark.anyio
    async def test_no_workspace_is_noop(self, orchestrator) -> None:
        await orchestrator.on_event_status_changed(
            uuid7(), EventStatus.CANCELLED, EventStatus.PUBLISHED,
        )

    @pytest.mark.anyio
    async def test_unrecognised_status_is_swallowed(self, services, seed_event) -> None:
        row = await _provisioned(services, seed_event)
        await services.bridge.event_status_changed(row.event_id, "completed", "ONGOING")
        assert row.status == WorkspaceStatus.ACTIVE
        assert row.dissolved_at is None

    @pytest.mark.anyio
    async def test_status_strings_are_coerced(self, orchestrator, services,
                                              seed_event) -> None:
        row = await _provisioned(services, seed_event)
        await orchestrator.on_event_status_changed(row.event_id, "COMPLETED", "ONGOING")
        assert row.status == WorkspaceStatus.WINDING_DOWN

    @pytest.mark.anyio
    async def test_notifier_failure_does_not_block_dissolution(
        self, db_session: AsyncSession, locks, clock, seed_event,
    ) -> None:
        class BrokenNotifier(WorkspaceNotifier):
            async def workspace_dissolved(self, **kwargs) -> int:
                raise ConnectionError("mail relay down")

        services = build_lifecycle_services(db_session, locks, notifier=BrokenNotifier(),
                                            clock=clock)
        row = await _provisioned(services, seed_event)
        await services.orchestrator.on_event_status_changed(
            row.event_id, EventStatus.CANCELLED, EventStatus.PUBLISHED,
        )
        assert row.status == WorkspaceStatus.DISSOLVED


# ===================================================================
# Lifecycle status projection
# ===================================================================


class TestLifecycleStatus:
    @pytest.mark.anyio
    async def test_no_workspace_yet(self, orchestrator, seed_event) -> None:
        event = await seed_event(organizer_id=ORGANIZER)
        status = await orchestrator.get_lifecycle_status(event.event_id)
        assert status.has_workspace is False
        assert status.can_provision is True
        assert status.can_dissolve is False

    @pytest.mark.anyio
    async def test_unknown_event(self, orchestrator) -> None:
        status = await orchestrator.get_lifecycle_status(uuid7())
        assert status.has_workspace is False
        assert status.can_provision is False

    @pytest.mark.anyio
    async def test_active(self, orchestrator, services, seed_event) -> None:
        row = await _provisioned(services, seed_event)
        status = await orchestrator.get_lifecycle_status(row.event_id)
        assert status.workspace_status == WorkspaceStatus.ACTIVE
        assert status.can_wind_down is True
        assert status.can_dissolve is True
        assert status.scheduled_dissolution is None

    @pytest.mark.anyio
    async def test_winding_down_reports_schedule(self, orchestrator, services,
                                                 seed_event) -> None:
        end = NOW - timedelta(days=2)
        row = await _winding_down(services, seed_event, retention=10, end_date=end)
        status = await orchestrator.get_lifecycle_status(row.event_id)
        assert status.can_wind_down is False
        assert status.can_dissolve is True
        assert status.scheduled_dissolution == end + timedelta(days=10)

    @pytest.mark.anyio
    async def test_dissolved(self, orchestrator, services, seed_event) -> None:
        row = await _provisioned(services, seed_event)
        await services.operations.dissolve(row.workspace_id, ORGANIZER)
        status = await orchestrator.get_lifecycle_status(row.event_id)
        assert status.can_wind_down is False
        assert status.can_dissolve is False


# ===================================================================
# Retention sweep
# ===================================================================


class TestSweep:
    @pytest.mark.anyio
    async def test_retention_boundary(self, orchestrator, services, seed_event) -> None:
        due = await _winding_down(services, seed_event, retention=30,
                                  end_date=NOW - timedelta(days=30))
        almost = await _winding_down(services, seed_event, retention=30,
                                     end_date=NOW - timedelta(days=30) + timedelta(seconds=1))

        report = await orchestrator.sweep_scheduled_dissolutions()

        assert report.examined == 2
        assert report.dissolved == [due.workspace_id]
        assert report.not_yet_due == [almost.workspace_id]
        assert due.status == WorkspaceStatus.DISSOLVED
        assert due.dissolution_reason == DissolutionReason.RETENTION_EXPIRED
        assert almost.status == WorkspaceStatus.WINDING_DOWN

    @pytest.mark.anyio
    async def test_completed_event_waits_for_retention(self, orchestrator, services,
                                                       seed_event) -> None:
        row = await _winding_down(services, seed_event, retention=30,
                                  status=EventStatus.COMPLETED,
                                  end_date=NOW + timedelta(days=1))
        report = await orchestrator.sweep_scheduled_dissolutions()
        assert report.not_yet_due == [row.workspace_id]
        assert row.status == WorkspaceStatus.WINDING_DOWN

    @pytest.mark.anyio
    async def test_zero_retention_dissolves_once_ended(self, orchestrator, services,
                                                       seed_event) -> None:
        row = await _winding_down(services, seed_event, retention=0,
                                  end_date=NOW - timedelta(minutes=5))
        report = await orchestrator.sweep_scheduled_dissolutions()
        assert report.dissolved == [row.workspace_id]

    @pytest.mark.anyio
    async def test_active_workspaces_untouched(self, orchestrator, services,
                                               seed_event) -> None:
        row = await _provisioned(services, seed_event, end_date=NOW - timedelta(days=90))
        report = await orchestrator.sweep_scheduled_dissolutions()
        assert report.examined == 0
        assert row.status == WorkspaceStatus.ACTIVE

    @pytest.mark.anyio
    async def test_second_sweep_has_no_side_effects(self, orchestrator, services,
                                                    seed_event) -> None:
        row = await _winding_down(services, seed_event, retention=1,
                                  end_date=NOW - timedelta(days=5))
        await orchestrator.sweep_scheduled_dissolutions()
        dissolved_at = row.dissolved_at
        version = row.version

        report = await orchestrator.sweep_scheduled_dissolutions()
        assert report.examined == 0
        assert report.dissolved == []
        assert row.dissolved_at == dissolved_at
        assert row.version == version

    @pytest.mark.anyio
    async def test_failure_skips_one_workspace(self, orchestrator, services, seed_event,
                                               monkeypatch: pytest.MonkeyPatch) -> None:
        bad = await _winding_down(services, seed_event, retention=1,
                                  end_date=NOW - timedelta(days=5))
        good = await _winding_down(services, seed_event, retention=1,
                                   end_date=NOW - timedelta(days=5))

        original = services.operations.perform_dissolution

        async def flaky(workspace_id, reason, *, when=None):
            if workspace_id == bad.workspace_id:
                raise InvalidStateError("row changed underneath")
            return await original(workspace_id, reason, when=when)

        monkeypatch.setattr(services.operations, "perform_dissolution", flaky)

        report = await orchestrator.sweep_scheduled_dissolutions()
        assert report.skipped == [bad.workspace_id]
        assert report.dissolved == [good.workspace_id]
        assert good.status == WorkspaceStatus.DISSOLVED

    @pytest.mark.anyio
    async def test_database_error_skips_one_workspace(self, orchestrator, services,
                                                      seed_event,
                                                      monkeypatch: pytest.MonkeyPatch) -> None:
        bad = await _winding_down(services, seed_event, retention=1,
                                  end_date=NOW - timedelta(days=5))
        good = await _winding_down(services, seed_event, retention=1,
                                   end_date=NOW - timedelta(days=5))

        original = services.operations.perform_dissolution

        async def deadlocked(workspace_id, reason, *, when=None):
            if workspace_id == bad.workspace_id:
                raise OperationalError("UPDATE workspaces", {}, Exception("deadlock detected"))
            return await original(workspace_id, reason, when=when)

        monkeypatch.setattr(services.operations, "perform_dissolution", deadlocked)

        report = await orchestrator.sweep_scheduled_dissolutions()
        assert report.examined == 2
        assert report.skipped == [bad.workspace_id]
        assert report.dissolved == [good.workspace_id]
        assert good.status == WorkspaceStatus.DISSOLVED
        assert good.dissolution_reason == DissolutionReason.RETENTION_EXPIRED
        assert bad.status == WorkspaceStatus.WINDING_DOWN

    @pytest.mark.anyio
    async def test_schedule_error_skips_one_workspace(self, orchestrator, services,
                                                      seed_event,
                                                      monkeypatch: pytest.MonkeyPatch) -> None:
        bad = await _winding_down(services, seed_event, retention=1,
                                  end_date=NOW - timedelta(days=5))
        good = await _winding_down(services, seed_event, retention=1,
                                   end_date=NOW - timedelta(days=5))

        original = orchestrator_module.scheduled_dissolution_date

        def broken(workspace, event):
            if workspace.workspace_id == bad.workspace_id:
                raise TypeError("settings payload is not a mapping")
            return original(workspace, event)

        monkeypatch.setattr(orchestrator_module, "scheduled_dissolution_date", broken)

        report = await orchestrator.sweep_scheduled_dissolutions()
        assert report.skipped == [bad.workspace_id]
        assert report.dissolved == [good.workspace_id]

    @pytest.mark.anyio
    async def test_concurrent_dissolve_applies_once(self, orchestrator, services,
                                                    seed_event,
                                                    monkeypatch: pytest.MonkeyPatch) -> None:
        row = await _winding_down(services, seed_event, retention=1,
                                  end_date=NOW - timedelta(days=5))
        wid = row.workspace_id
        await services.operations.add_member(wid, ORGANIZER, uuid7(), WorkspaceRole.TEAM_LEAD)

        applied = []
        original = services.operations._apply_dissolution

        async def counting(target, reason):
            applied.append(reason)
            await original(target, reason)

        monkeypatch.setattr(services.operations, "_apply_dissolution", counting)

        _, report = await asyncio.gather(
            services.operations.dissolve(wid, ORGANIZER),
            orchestrator.sweep_scheduled_dissolutions(),
        )

        assert len(applied) == 1
        assert row.status == WorkspaceStatus.DISSOLVED
        assert row.dissolution_reason == applied[0]
        if applied[0] == DissolutionReason.MANUAL:
            assert report.skipped == [wid]
            assert report.dissolved == []
        else:
            assert report.dissolved == [wid]
        members = await services.store.members.list_by_workspace(wid)
        assert len(members) == 2
        assert all(m.status == MemberStatus.INACTIVE for m in members)
        assert all(m.left_at == row.dissolved_at for m in members)
