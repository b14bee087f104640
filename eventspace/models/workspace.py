"""Workspace models: settings, template structure, and lifecycle projections.

A workspace is bound 1:1 to an event. Its settings live as a structured blob
on the workspace row; these models validate that blob on the way in and out.
"""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from eventspace.models.common import (
    ChannelType,
    EventspaceBase,
    TaskPriority,
    UTCTimestamp,
    WorkspaceStatus,
)

DEFAULT_CHANNEL_NAMES: tuple[str, ...] = ("general", "announcements", "tasks")

DEFAULT_TASK_CATEGORIES: tuple[str, ...] = (
    "SETUP",
    "MARKETING",
    "LOGISTICS",
    "TECHNICAL",
    "REGISTRATION",
    "POST_EVENT",
)

DEFAULT_RETENTION_PERIOD_DAYS = 30


class WorkspaceSettings(EventspaceBase):
    """Settings blob stored on every workspace."""

    auto_invite_organizer: bool = True
    default_channels: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CHANNEL_NAMES),
    )
    task_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TASK_CATEGORIES),
    )
    retention_period_days: int = Field(
        default=DEFAULT_RETENTION_PERIOD_DAYS,
        ge=0,
        description="Days after event end before a WINDING_DOWN workspace is dissolved.",
    )
    allow_external_members: bool = False


class WorkspaceSettingsPatch(EventspaceBase):
    """Partial settings update. Only provided fields change."""

    auto_invite_organizer: bool | None = None
    default_channels: list[str] | None = None
    task_categories: list[str] | None = None
    retention_period_days: int | None = Field(default=None, ge=0)
    allow_external_members: bool | None = None


class WorkspacePatch(EventspaceBase):
    """Partial workspace update."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    settings: WorkspaceSettingsPatch | None = None


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class TemplateChannel(EventspaceBase):
    name: str = Field(..., min_length=1, max_length=100)
    channel_type: ChannelType = ChannelType.GENERAL
    description: str = ""
    is_private: bool = False


class TemplateTask(EventspaceBase):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    days_before_event: int = Field(
        default=0,
        description="Due date offset, counted back from the event start date.",
    )


class TemplateTaskCategory(EventspaceBase):
    category: str = Field(..., min_length=1, max_length=100)
    tasks: list[TemplateTask] = Field(default_factory=list)


class TemplateStructure(EventspaceBase):
    """Channels and task categories a template adds to a workspace."""

    channels: list[TemplateChannel] = Field(default_factory=list)
    task_categories: list[TemplateTaskCategory] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Lifecycle projections
# ---------------------------------------------------------------------------


class TaskSummary(EventspaceBase):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    overdue: int = 0


class LifecycleStatus(EventspaceBase):
    """Actions available on an event's workspace given its current state."""

    has_workspace: bool
    workspace_status: WorkspaceStatus | None = None
    can_provision: bool
    can_wind_down: bool
    can_dissolve: bool
    scheduled_dissolution: datetime | None = None


class SweepReport(EventspaceBase):
    """Outcome of one retention sweep."""

    started_at: UTCTimestamp
    examined: int = 0
    dissolved: list[UUID] = Field(default_factory=list)
    not_yet_due: list[UUID] = Field(default_factory=list)
    skipped: list[UUID] = Field(default_factory=list)


class DepartureReport(EventspaceBase):
    member_id: UUID
    reassigned_to: UUID
    reassigned_task_ids: list[UUID] = Field(default_factory=list)


class SchedulerStatus(EventspaceBase):
    running: bool
    interval_seconds: float
    next_run_estimate: datetime | None = None
    last_run_at: datetime | None = None
    last_error: str | None = None
    run_count: int = 0
