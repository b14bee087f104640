"""FastAPI workspace endpoints.

POST  /v1/workspaces/provision                 — provision workspace for an event
GET   /v1/workspaces/by-event/{event_id}       — get workspace by event
GET   /v1/workspaces/{id}                      — get workspace
PATCH /v1/workspaces/{id}                      — partial update (MANAGE_WORKSPACE)
POST  /v1/workspaces/{id}/wind-down            — initiate wind-down (MANAGE_WORKSPACE)
POST  /v1/workspaces/{id}/dissolve             — dissolve now (MANAGE_WORKSPACE)
POST  /v1/workspaces/{id}/emergency-revoke     — revoke all access (MANAGE_WORKSPACE)
POST  /v1/workspaces/{id}/departures           — early departure (MANAGE_TEAM)
POST  /v1/workspaces/{id}/apply-template       — apply template (MANAGE_WORKSPACE)
POST  /v1/workspaces/{id}/members              — add member (MANAGE_TEAM / INVITE_MEMBERS)
POST  /v1/workspaces/{id}/tasks                — create task (CREATE_TASKS / MANAGE_TASKS)
POST  /v1/workspace-templates                  — register a template

Errors raised by WorkspaceOperations are mapped to status codes by the
application-level exception handler.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from eventspace.api.dependencies import (
    get_current_user_id,
    get_template_repo,
    get_workspace_operations,
)
from eventspace.db.tables import TeamMemberRow, WorkspaceRow, WorkspaceTaskRow
from eventspace.lifecycle.operations import WorkspaceDetail, WorkspaceOperations
from eventspace.models.common import (
    TaskPriority,
    TaskStatus,
    WorkspaceRole,
    new_uuid7,
)
from eventspace.models.workspace import (
    DepartureReport,
    TaskSummary,
    TemplateStructure,
    WorkspacePatch,
    WorkspaceSettings,
)
from eventspace.repositories.workspace import WorkspaceTemplateRepository

router = APIRouter(prefix="/v1/workspaces", tags=["workspaces"])
templates_router = APIRouter(prefix="/v1/workspace-templates", tags=["workspaces"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class ProvisionRequest(BaseModel):
    event_id: UUID


class EmergencyRevokeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class DepartureRequest(BaseModel):
    departing_user_id: UUID


class ApplyTemplateRequest(BaseModel):
    template_id: UUID


class AddMemberRequest(BaseModel):
    user_id: UUID
    role: WorkspaceRole = WorkspaceRole.GENERAL_VOLUNTEER
    permissions: list[str] | None = None


class CreateTaskRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category: str = "GENERAL"
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    assignee_id: UUID | None = None
    due_date: datetime | None = None


class CreateTemplateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    category: str = "GENERAL"
    structure: TemplateStructure


class WorkspaceResponse(BaseModel):
    workspace_id: str
    event_id: str
    name: str
    description: str
    status: str
    settings: WorkspaceSettings
    template_id: str | None = None
    dissolved_at: str | None = None
    dissolution_reason: str | None = None
    revocation_reason: str | None = None
    created_at: str
    updated_at: str


class MemberResponse(BaseModel):
    member_id: str
    user_id: str
    role: str
    status: str
    permissions: list[str] | None = None
    joined_at: str
    left_at: str | None = None


class ChannelResponse(BaseModel):
    channel_id: str
    name: str
    channel_type: str
    description: str
    is_private: bool


class EventSummaryResponse(BaseModel):
    event_id: str
    name: str
    start_date: str
    end_date: str
    status: str


class WorkspaceDetailResponse(WorkspaceResponse):
    event: EventSummaryResponse | None = None
    members: list[MemberResponse]
    channels: list[ChannelResponse]
    task_summary: TaskSummary


class LifecycleActionResponse(BaseModel):
    workspace_id: str
    status: str
    message: str


class TaskResponse(BaseModel):
    task_id: str
    workspace_id: str
    assignee_id: str | None = None
    title: str
    description: str
    category: str
    priority: str
    status: str
    due_date: str | None = None
    tags: list[str]


class TemplateResponse(BaseModel):
    template_id: str
    name: str
    category: str
    usage_count: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _workspace_fields(row: WorkspaceRow) -> dict:
    return {
        "workspace_id": str(row.workspace_id),
        "event_id": str(row.event_id),
        "name": row.name,
        "description": row.description or "",
        "status": row.status,
        "settings": WorkspaceSettings.model_validate(row.settings_json),
        "template_id": str(row.template_id) if row.template_id else None,
        "dissolved_at": _iso(row.dissolved_at),
        "dissolution_reason": row.dissolution_reason,
        "revocation_reason": row.revocation_reason,
        "created_at": row.created_at.isoformat(),
        "updated_at": row.updated_at.isoformat(),
    }


def _member_to_response(member: TeamMemberRow) -> MemberResponse:
    return MemberResponse(
        member_id=str(member.member_id),
        user_id=str(member.user_id),
        role=member.role,
        status=member.status,
        permissions=member.permissions,
        joined_at=member.joined_at.isoformat(),
        left_at=_iso(member.left_at),
    )


def _task_to_response(task: WorkspaceTaskRow) -> TaskResponse:
    return TaskResponse(
        task_id=str(task.task_id),
        workspace_id=str(task.workspace_id),
        assignee_id=str(task.assignee_id) if task.assignee_id else None,
        title=task.title,
        description=task.description or "",
        category=task.category,
        priority=task.priority,
        status=task.status,
        due_date=_iso(task.due_date),
        tags=task.tags or [],
    )


def _detail_to_response(detail: WorkspaceDetail) -> WorkspaceDetailResponse:
    event = detail.event
    return WorkspaceDetailResponse(
        **_workspace_fields(detail.workspace),
        event=EventSummaryResponse(
            event_id=str(event.event_id),
            name=event.name,
            start_date=event.start_date.isoformat(),
            end_date=event.end_date.isoformat(),
            status=event.status,
        ) if event is not None else None,
        members=[_member_to_response(m) for m in detail.members],
        channels=[
            ChannelResponse(
                channel_id=str(c.channel_id),
                name=c.name,
                channel_type=c.channel_type,
                description=c.description or "",
                is_private=bool(c.is_private),
            )
            for c in detail.channels
        ],
        task_summary=detail.task_summary,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/provision", status_code=201, response_model=WorkspaceResponse)
async def provision_workspace(
    body: ProvisionRequest,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> WorkspaceResponse:
    """Provision the workspace for an event the caller organizes."""
    row = await ops.provision(body.event_id, user_id)
    return WorkspaceResponse(**_workspace_fields(row))


@router.get("/by-event/{event_id}", response_model=WorkspaceDetailResponse)
async def get_workspace_by_event(
    event_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> WorkspaceDetailResponse:
    detail = await ops.get_workspace_by_event(event_id, user_id)
    return _detail_to_response(detail)


@router.get("/{workspace_id}", response_model=WorkspaceDetailResponse)
async def get_workspace(
    workspace_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> WorkspaceDetailResponse:
    detail = await ops.get_workspace(workspace_id, user_id)
    return _detail_to_response(detail)


@router.patch("/{workspace_id}", response_model=WorkspaceResponse)
async def update_workspace(
    workspace_id: UUID,
    body: WorkspacePatch,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> WorkspaceResponse:
    """Partial update: only fields present in the body change."""
    row = await ops.update_workspace(workspace_id, user_id, body)
    return WorkspaceResponse(**_workspace_fields(row))


@router.post("/{workspace_id}/wind-down", response_model=LifecycleActionResponse)
async def initiate_wind_down(
    workspace_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> LifecycleActionResponse:
    row = await ops.initiate_wind_down(workspace_id, user_id)
    return LifecycleActionResponse(
        workspace_id=str(workspace_id), status=row.status,
        message="Workspace wind-down initiated.",
    )


@router.post("/{workspace_id}/dissolve", response_model=LifecycleActionResponse)
async def dissolve_workspace(
    workspace_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> LifecycleActionResponse:
    row = await ops.dissolve(workspace_id, user_id)
    return LifecycleActionResponse(
        workspace_id=str(workspace_id), status=row.status,
        message="Workspace dissolved.",
    )


@router.post("/{workspace_id}/emergency-revoke", response_model=LifecycleActionResponse)
async def emergency_revoke(
    workspace_id: UUID,
    body: EmergencyRevokeRequest,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> LifecycleActionResponse:
    row = await ops.emergency_revoke(workspace_id, user_id, body.reason)
    return LifecycleActionResponse(
        workspace_id=str(workspace_id), status=row.status,
        message="All workspace access revoked.",
    )


@router.post("/{workspace_id}/departures", response_model=DepartureReport)
async def handle_departure(
    workspace_id: UUID,
    body: DepartureRequest,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> DepartureReport:
    return await ops.handle_early_departure(workspace_id, body.departing_user_id, user_id)


@router.post("/{workspace_id}/apply-template", response_model=WorkspaceResponse)
async def apply_template(
    workspace_id: UUID,
    body: ApplyTemplateRequest,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> WorkspaceResponse:
    row = await ops.apply_template(workspace_id, body.template_id, user_id)
    return WorkspaceResponse(**_workspace_fields(row))


@router.post("/{workspace_id}/members", status_code=201, response_model=MemberResponse)
async def add_member(
    workspace_id: UUID,
    body: AddMemberRequest,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> MemberResponse:
    member = await ops.add_member(
        workspace_id, user_id, body.user_id, body.role, permissions=body.permissions,
    )
    return _member_to_response(member)


@router.post("/{workspace_id}/tasks", status_code=201, response_model=TaskResponse)
async def create_task(
    workspace_id: UUID,
    body: CreateTaskRequest,
    user_id: UUID = Depends(get_current_user_id),
    ops: WorkspaceOperations = Depends(get_workspace_operations),
) -> TaskResponse:
    task = await ops.create_task(
        workspace_id, user_id,
        title=body.title, description=body.description, category=body.category,
        priority=body.priority, status=body.status,
        assignee_id=body.assignee_id, due_date=body.due_date,
    )
    return _task_to_response(task)


@templates_router.post("", status_code=201, response_model=TemplateResponse)
async def create_template(
    body: CreateTemplateRequest,
    user_id: UUID = Depends(get_current_user_id),
    repo: WorkspaceTemplateRepository = Depends(get_template_repo),
) -> TemplateResponse:
    row = await repo.create(
        template_id=new_uuid7(), name=body.name, description=body.description,
        category=body.category, structure_json=body.structure.model_dump(mode="json"),
        created_by=user_id,
    )
    return TemplateResponse(
        template_id=str(row.template_id), name=row.name,
        category=row.category, usage_count=row.usage_count,
    )
