"""Shared types, enums, and base models used across Eventspace domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]


# --- Shared enums ---


class EventStatus(StrEnum):
    """Status of the owning event (owned by the event component)."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WorkspaceStatus(StrEnum):
    """Workspace lifecycle states."""

    PROVISIONING = "PROVISIONING"
    ACTIVE = "ACTIVE"
    WINDING_DOWN = "WINDING_DOWN"
    DISSOLVED = "DISSOLVED"


class DissolutionReason(StrEnum):
    """Why a workspace entered DISSOLVED.

    Only CANCELLED dissolutions are reversible.
    """

    CANCELLED = "CANCELLED"
    RETENTION_EXPIRED = "RETENTION_EXPIRED"
    MANUAL = "MANUAL"
    EMERGENCY = "EMERGENCY"


class MemberStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class WorkspaceRole(StrEnum):
    """Functional roles inside a workspace."""

    WORKSPACE_OWNER = "WORKSPACE_OWNER"
    TEAM_LEAD = "TEAM_LEAD"
    EVENT_COORDINATOR = "EVENT_COORDINATOR"
    VOLUNTEER_MANAGER = "VOLUNTEER_MANAGER"
    TECHNICAL_SPECIALIST = "TECHNICAL_SPECIALIST"
    MARKETING_LEAD = "MARKETING_LEAD"
    GENERAL_VOLUNTEER = "GENERAL_VOLUNTEER"


class Permission(StrEnum):
    """Capability strings carried on a team membership."""

    MANAGE_WORKSPACE = "MANAGE_WORKSPACE"
    MANAGE_TEAM = "MANAGE_TEAM"
    MANAGE_TASKS = "MANAGE_TASKS"
    MANAGE_CHANNELS = "MANAGE_CHANNELS"
    MANAGE_PERMISSIONS = "MANAGE_PERMISSIONS"
    VIEW_ANALYTICS = "VIEW_ANALYTICS"
    INVITE_MEMBERS = "INVITE_MEMBERS"
    CREATE_TASKS = "CREATE_TASKS"
    VIEW_TASKS = "VIEW_TASKS"
    UPDATE_TASK_PROGRESS = "UPDATE_TASK_PROGRESS"


class TaskStatus(StrEnum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW_REQUIRED = "REVIEW_REQUIRED"
    BLOCKED = "BLOCKED"
    COMPLETED = "COMPLETED"


class TaskPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class ChannelType(StrEnum):
    GENERAL = "GENERAL"
    ANNOUNCEMENT = "ANNOUNCEMENT"
    TASK_SPECIFIC = "TASK_SPECIFIC"
    ROLE_BASED = "ROLE_BASED"


# --- Base model ---


class EventspaceBase(BaseModel):
    """Base model with common configuration for all Eventspace Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "ser_json_timedelta": "iso8601",
        "protected_namespaces": (),
    }
