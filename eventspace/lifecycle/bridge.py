"""Adapter the event component calls on event creation and status changes."""

from uuid import UUID

from eventspace.db.tables import WorkspaceRow
from eventspace.lifecycle.orchestrator import LifecycleOrchestrator
from eventspace.models.common import EventStatus


class EventLifecycleBridge:
    """Forwards event-domain callbacks into the lifecycle orchestrator.

    Both calls are best-effort and never raise, so event creation and
    updates cannot fail because of workspace trouble.
    """

    def __init__(self, orchestrator: LifecycleOrchestrator) -> None:
        self._orchestrator = orchestrator

    async def event_created(self, event_id: UUID, organizer_id: UUID) -> WorkspaceRow | None:
        return await self._orchestrator.on_event_created(event_id, organizer_id)

    async def event_status_changed(self, event_id: UUID, new_status: EventStatus,
                                   old_status: EventStatus) -> None:
        await self._orchestrator.on_event_status_changed(event_id, new_status, old_status)
