"""Workspace lifecycle schema: events, workspaces, members, tasks, channels, templates.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- External (event component) --
    op.create_table(
        "events",
        sa.Column("event_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("organizer_id", UUID(as_uuid=True), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    # -- Lifecycle --
    op.create_table(
        "workspaces",
        sa.Column("workspace_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("event_id", UUID(as_uuid=True),
                  sa.ForeignKey("events.event_id"), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("settings_json", JSONB, nullable=False),
        sa.Column("template_id", UUID(as_uuid=True), nullable=True),
        sa.Column("dissolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dissolution_reason", sa.String(50), nullable=True),
        sa.Column("revocation_reason", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_workspaces_status", "workspaces", ["status"])

    # -- Operational --
    op.create_table(
        "team_members",
        sa.Column("member_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", UUID(as_uuid=True),
                  sa.ForeignKey("workspaces.workspace_id"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("permissions", JSONB, nullable=True),
        sa.Column("invited_by", UUID(as_uuid=True), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_team_member_workspace_user"),
    )
    op.create_index("ix_team_members_workspace_id", "team_members", ["workspace_id"])

    op.create_table(
        "workspace_tasks",
        sa.Column("task_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", UUID(as_uuid=True),
                  sa.ForeignKey("workspaces.workspace_id"), nullable=False),
        sa.Column("assignee_id", UUID(as_uuid=True),
                  sa.ForeignKey("team_members.member_id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("category", sa.String(100), nullable=False, server_default="GENERAL"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="MEDIUM"),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("tags", JSONB, nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_workspace_tasks_workspace_id", "workspace_tasks", ["workspace_id"])
    op.create_index("ix_workspace_tasks_assignee_id", "workspace_tasks", ["assignee_id"])

    op.create_table(
        "workspace_channels",
        sa.Column("channel_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("workspace_id", UUID(as_uuid=True),
                  sa.ForeignKey("workspaces.workspace_id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("channel_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("is_private", sa.Boolean, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("workspace_id", "name", name="uq_workspace_channel_name"),
    )
    op.create_index("ix_workspace_channels_workspace_id", "workspace_channels", ["workspace_id"])

    op.create_table(
        "workspace_templates",
        sa.Column("template_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("category", sa.String(50), nullable=False, server_default="GENERAL"),
        sa.Column("structure_json", JSONB, nullable=False),
        sa.Column("usage_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_by", UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("workspace_templates")
    op.drop_table("workspace_channels")
    op.drop_table("workspace_tasks")
    op.drop_table("team_members")
    op.drop_table("workspaces")
    op.drop_table("events")
