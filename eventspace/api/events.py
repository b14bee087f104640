"""FastAPI event hook endpoints.

POST /v1/events/{event_id}/hooks/created         — event was created
POST /v1/events/{event_id}/hooks/status-changed  — event status changed

Called by the event component after its own write. Both hooks are
best-effort: workspace failures are logged and the hook still answers 202.
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from eventspace.api.dependencies import get_event_bridge
from eventspace.lifecycle.bridge import EventLifecycleBridge
from eventspace.models.common import EventStatus

router = APIRouter(prefix="/v1/events", tags=["events"])


class EventCreatedHook(BaseModel):
    organizer_id: UUID


class EventStatusChangedHook(BaseModel):
    new_status: EventStatus
    old_status: EventStatus


class HookAccepted(BaseModel):
    event_id: str
    accepted: bool = True
    workspace_id: str | None = None


@router.post("/{event_id}/hooks/created", status_code=202, response_model=HookAccepted)
async def event_created(
    event_id: UUID,
    body: EventCreatedHook,
    bridge: EventLifecycleBridge = Depends(get_event_bridge),
) -> HookAccepted:
    row = await bridge.event_created(event_id, body.organizer_id)
    return HookAccepted(
        event_id=str(event_id),
        workspace_id=str(row.workspace_id) if row is not None else None,
    )


@router.post("/{event_id}/hooks/status-changed", status_code=202, response_model=HookAccepted)
async def event_status_changed(
    event_id: UUID,
    body: EventStatusChangedHook,
    bridge: EventLifecycleBridge = Depends(get_event_bridge),
) -> HookAccepted:
    await bridge.event_status_changed(event_id, body.new_status, body.old_status)
    return HookAccepted(event_id=str(event_id))
