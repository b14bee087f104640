"""Workspace lifecycle orchestrator.

States: PROVISIONING -> ACTIVE -> WINDING_DOWN -> DISSOLVED, with
WINDING_DOWN -> ACTIVE as the reactivation edge.

Decides which transition an external trigger calls for (event status
changes, the retention sweep), validates it, and hands the mutation to
WorkspaceOperations. Event hooks are best-effort: a failure is logged and
rolled back to a SAVEPOINT so the event component's own write still commits.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar
from uuid import UUID

from eventspace.db.tables import WorkspaceRow
from eventspace.lifecycle.errors import WorkspaceError, best_effort
from eventspace.lifecycle.operations import (
    WorkspaceOperations,
    event_has_ended,
    scheduled_dissolution_date,
)
from eventspace.lifecycle.transitions import TransitionResult, check_transition
from eventspace.models.common import (
    DissolutionReason,
    EventStatus,
    WorkspaceStatus,
    utc_now,
)
from eventspace.models.workspace import LifecycleStatus, SweepReport
from eventspace.repositories.events import EventReader
from eventspace.repositories.workspace import WorkspaceStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DISSOLVABLE_EVENT_STATUSES = frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED})


class LifecycleOrchestrator:
    """State machine driver for workspaces bound to events."""

    def __init__(
        self,
        *,
        operations: WorkspaceOperations,
        store: WorkspaceStore,
        events: EventReader | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._ops = operations
        self._store = store
        self._events = events or store.events
        self._clock = clock

    async def _isolated(self, fn: Callable[..., Awaitable[T]], *args) -> T:
        async with self._store.savepoint():
            return await fn(*args)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate_transition(
        self,
        workspace_id: UUID,
        from_status: WorkspaceStatus | str,
        to_status: WorkspaceStatus | str,
    ) -> TransitionResult:
        """Check a transition against the table and, for DISSOLVED, the event.

        Entering DISSOLVED additionally requires the event to have ended or
        to be COMPLETED or CANCELLED.
        """
        result = check_transition(from_status, to_status)
        if not result.valid or to_status != WorkspaceStatus.DISSOLVED:
            return result

        workspace = await self._store.workspaces.get(workspace_id)
        if workspace is None:
            return TransitionResult(valid=False, reason="Workspace not found")
        event = await self._events.get(workspace.event_id)
        if event is None:
            return TransitionResult(valid=False, reason="Event not found")

        if not (event_has_ended(event, self._clock())
                or event.status in _DISSOLVABLE_EVENT_STATUSES):
            return TransitionResult(
                valid=False,
                reason="Cannot dissolve workspace before event completion or cancellation",
            )
        return TransitionResult(valid=True)

    # ------------------------------------------------------------------
    # Event hooks
    # ------------------------------------------------------------------

    async def on_event_created(self, event_id: UUID, organizer_id: UUID) -> WorkspaceRow | None:
        """Provision the event's workspace unless one exists. Never raises."""
        return await best_effort(
            self._isolated(self._provision_if_missing, event_id, organizer_id),
            f"auto-provision workspace for event {event_id}",
        )

    async def _provision_if_missing(self, event_id: UUID, organizer_id: UUID) -> WorkspaceRow:
        existing = await self._store.workspaces.get_by_event(event_id)
        if existing is not None:
            logger.info("Workspace already exists for event %s", event_id)
            return existing
        row = await self._ops.provision(event_id, organizer_id)
        logger.info("Workspace automatically provisioned for event %s", event_id)
        return row

    async def on_event_status_changed(
        self,
        event_id: UUID,
        new_status: EventStatus | str,
        old_status: EventStatus | str,
    ) -> None:
        """React to the event's status change. Never raises."""
        await best_effort(
            self._isolated(self._apply_event_status_change, event_id, new_status, old_status),
            f"handle status change {old_status} -> {new_status} for event {event_id}",
        )

    async def _apply_event_status_change(self, event_id: UUID, new_status: EventStatus | str,
                                         old_status: EventStatus | str) -> None:
        new_status = EventStatus(new_status)
        old_status = EventStatus(old_status)
        workspace = await self._store.workspaces.get_by_event(event_id)
        if workspace is None:
            logger.info("No workspace found for event %s", event_id)
            return
        workspace_id = workspace.workspace_id

        if new_status == EventStatus.COMPLETED and old_status != EventStatus.COMPLETED:
            if workspace.status == WorkspaceStatus.ACTIVE:
                result = check_transition(workspace.status, WorkspaceStatus.WINDING_DOWN)
                if result.valid:
                    await self._ops.mark_winding_down(workspace_id)

        if new_status == EventStatus.CANCELLED:
            if await self._ops.perform_dissolution(workspace_id, DissolutionReason.CANCELLED):
                logger.info("Workspace %s dissolved due to event cancellation", workspace_id)

        if old_status == EventStatus.CANCELLED and new_status != EventStatus.CANCELLED:
            await self._ops.restore_after_cancellation(workspace_id)

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    async def get_lifecycle_status(self, event_id: UUID) -> LifecycleStatus:
        workspace = await self._store.workspaces.get_by_event(event_id)
        if workspace is None:
            event = await self._events.get(event_id)
            return LifecycleStatus(
                has_workspace=False,
                can_provision=event is not None,
                can_wind_down=False,
                can_dissolve=False,
            )

        status = WorkspaceStatus(workspace.status)
        scheduled: datetime | None = None
        if status == WorkspaceStatus.WINDING_DOWN:
            event = await self._events.get(workspace.event_id)
            if event is not None:
                scheduled = scheduled_dissolution_date(workspace, event)

        return LifecycleStatus(
            has_workspace=True,
            workspace_status=status,
            can_provision=False,
            can_wind_down=status == WorkspaceStatus.ACTIVE,
            can_dissolve=status in (WorkspaceStatus.ACTIVE, WorkspaceStatus.WINDING_DOWN),
            scheduled_dissolution=scheduled,
        )

    # ------------------------------------------------------------------
    # Retention sweep
    # ------------------------------------------------------------------

    async def sweep_scheduled_dissolutions(self) -> SweepReport:
        """Dissolve WINDING_DOWN workspaces whose retention window has elapsed.

        A workspace is due once now >= event end + retention days, whatever
        the event status. Each dissolution runs in its own SAVEPOINT; a
        workspace that fails or changed state meanwhile is skipped.
        """
        now = self._clock()
        report = SweepReport(started_at=now)

        for workspace, event in await self._store.workspaces.list_dissolution_candidates(now):
            report.examined += 1
            workspace_id = workspace.workspace_id

            def still_due(current: WorkspaceRow, event=event) -> bool:
                return (current.status == WorkspaceStatus.WINDING_DOWN
                        and now >= scheduled_dissolution_date(current, event))

            try:
                if now < scheduled_dissolution_date(workspace, event):
                    report.not_yet_due.append(workspace_id)
                    continue
                async with self._store.savepoint():
                    dissolved = await self._ops.perform_dissolution(
                        workspace_id, DissolutionReason.RETENTION_EXPIRED, when=still_due,
                    )
            except WorkspaceError as exc:
                logger.warning("Sweep skipped workspace %s: %s", workspace_id, exc)
                report.skipped.append(workspace_id)
                continue
            except Exception:
                logger.exception("Sweep failed for workspace %s", workspace_id)
                report.skipped.append(workspace_id)
                continue

            if dissolved:
                report.dissolved.append(workspace_id)
            else:
                report.skipped.append(workspace_id)

        logger.info(
            "Dissolution sweep examined %d workspaces: %d dissolved, %d not yet due, %d skipped",
            report.examined, len(report.dissolved), len(report.not_yet_due), len(report.skipped),
        )
        return report
