"""Workspace, team member, task, channel, and template repositories.

Repositories call add()/flush() only, never commit(). The caller's session
(request dependency or scheduler tick) owns commit/rollback.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from eventspace.db.tables import (
    EventRow,
    TeamMemberRow,
    WorkspaceChannelRow,
    WorkspaceRow,
    WorkspaceTaskRow,
    WorkspaceTemplateRow,
)
from eventspace.lifecycle.errors import ConcurrentModificationError, ConflictError
from eventspace.models.common import MemberStatus, WorkspaceStatus, new_uuid7, utc_now
from eventspace.repositories.events import EventRepository


class WorkspaceRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, workspace_id: UUID, event_id: UUID, name: str,
                     description: str, settings_json: dict,
                     status: str = WorkspaceStatus.PROVISIONING) -> WorkspaceRow:
        now = utc_now()
        row = WorkspaceRow(
            workspace_id=workspace_id, event_id=event_id, name=name,
            description=description, status=status,
            settings_json=settings_json, created_at=now, updated_at=now,
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            msg = f"Workspace already exists for event {event_id}."
            raise ConflictError(msg) from exc
        return row

    async def get(self, workspace_id: UUID) -> WorkspaceRow | None:
        return await self._session.get(WorkspaceRow, workspace_id)

    async def get_by_event(self, event_id: UUID) -> WorkspaceRow | None:
        result = await self._session.execute(
            select(WorkspaceRow).where(WorkspaceRow.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def refresh(self, row: WorkspaceRow) -> WorkspaceRow:
        """Re-read a row so status checks see the latest committed state."""
        await self._session.refresh(row)
        return row

    async def list_by_status(self, status: str) -> list[WorkspaceRow]:
        result = await self._session.execute(
            select(WorkspaceRow).where(WorkspaceRow.status == status)
        )
        return list(result.scalars().all())

    async def list_dissolution_candidates(
        self, now: datetime,
    ) -> list[tuple[WorkspaceRow, EventRow]]:
        """WINDING_DOWN workspaces whose event has ended or is COMPLETED."""
        result = await self._session.execute(
            select(WorkspaceRow, EventRow)
            .join(EventRow, EventRow.event_id == WorkspaceRow.event_id)
            .where(
                WorkspaceRow.status == WorkspaceStatus.WINDING_DOWN,
                or_(EventRow.status == "COMPLETED", EventRow.end_date < now),
            )
            .order_by(WorkspaceRow.workspace_id)
        )
        return [(ws, ev) for ws, ev in result.all()]

    async def save(self, row: WorkspaceRow) -> WorkspaceRow:
        """Flush pending changes on row, bumping its version."""
        row.updated_at = utc_now()
        try:
            await self._session.flush()
        except StaleDataError as exc:
            msg = f"Workspace {row.workspace_id} was modified concurrently."
            raise ConcurrentModificationError(msg) from exc
        return row


class TeamMemberRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, workspace_id: UUID, user_id: UUID, role: str,
                     permissions: list[str] | None,
                     invited_by: UUID | None = None) -> TeamMemberRow:
        row = TeamMemberRow(
            member_id=new_uuid7(), workspace_id=workspace_id, user_id=user_id,
            role=role, status=MemberStatus.ACTIVE, permissions=permissions,
            invited_by=invited_by, joined_at=utc_now(),
        )
        self._session.add(row)
        try:
            await self._session.flush()
        except IntegrityError as exc:
            msg = f"User {user_id} is already a member of workspace {workspace_id}."
            raise ConflictError(msg) from exc
        return row

    async def get(self, member_id: UUID) -> TeamMemberRow | None:
        return await self._session.get(TeamMemberRow, member_id)

    async def get_membership(self, workspace_id: UUID,
                             user_id: UUID) -> TeamMemberRow | None:
        """Membership in any status."""
        result = await self._session.execute(
            select(TeamMemberRow).where(
                TeamMemberRow.workspace_id == workspace_id,
                TeamMemberRow.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_active(self, workspace_id: UUID,
                         user_id: UUID) -> TeamMemberRow | None:
        member = await self.get_membership(workspace_id, user_id)
        if member is None or member.status != MemberStatus.ACTIVE:
            return None
        return member

    async def list_by_workspace(self, workspace_id: UUID,
                                status: str | None = None) -> list[TeamMemberRow]:
        stmt = select(TeamMemberRow).where(TeamMemberRow.workspace_id == workspace_id)
        if status is not None:
            stmt = stmt.where(TeamMemberRow.status == status)
        result = await self._session.execute(stmt.order_by(TeamMemberRow.joined_at))
        return list(result.scalars().all())

    async def deactivate(self, member: TeamMemberRow, left_at: datetime) -> TeamMemberRow:
        member.status = MemberStatus.INACTIVE
        member.left_at = left_at
        await self._session.flush()
        return member

    async def reactivate(self, member: TeamMemberRow) -> TeamMemberRow:
        member.status = MemberStatus.ACTIVE
        member.left_at = None
        await self._session.flush()
        return member

    async def deactivate_all_active(self, workspace_id: UUID,
                                    left_at: datetime) -> list[TeamMemberRow]:
        """Revoke every ACTIVE membership. Already-inactive members keep their left_at."""
        members = await self.list_by_workspace(workspace_id, status=MemberStatus.ACTIVE)
        for member in members:
            member.status = MemberStatus.INACTIVE
            member.left_at = left_at
        await self._session.flush()
        return members

    async def list_left_since(self, workspace_id: UUID,
                              since: datetime) -> list[TeamMemberRow]:
        """INACTIVE members whose left_at is at or after since."""
        result = await self._session.execute(
            select(TeamMemberRow).where(
                TeamMemberRow.workspace_id == workspace_id,
                TeamMemberRow.status == MemberStatus.INACTIVE,
                TeamMemberRow.left_at.is_not(None),
                TeamMemberRow.left_at >= since,
            )
        )
        return list(result.scalars().all())


class WorkspaceTaskRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, workspace_id: UUID, title: str,
                     description: str = "", category: str = "GENERAL",
                     priority: str = "MEDIUM", status: str = "TODO",
                     assignee_id: UUID | None = None,
                     due_date: datetime | None = None,
                     tags: list[str] | None = None) -> WorkspaceTaskRow:
        now = utc_now()
        row = WorkspaceTaskRow(
            task_id=new_uuid7(), workspace_id=workspace_id,
            assignee_id=assignee_id, title=title, description=description,
            category=category, priority=priority, status=status,
            due_date=due_date, tags=tags or [], created_at=now, updated_at=now,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, task_id: UUID) -> WorkspaceTaskRow | None:
        return await self._session.get(WorkspaceTaskRow, task_id)

    async def list_by_workspace(self, workspace_id: UUID) -> list[WorkspaceTaskRow]:
        result = await self._session.execute(
            select(WorkspaceTaskRow).where(WorkspaceTaskRow.workspace_id == workspace_id)
        )
        return list(result.scalars().all())

    async def list_open_by_assignee(self, workspace_id: UUID,
                                    assignee_id: UUID) -> list[WorkspaceTaskRow]:
        """Tasks assigned to a member that are not COMPLETED."""
        result = await self._session.execute(
            select(WorkspaceTaskRow).where(
                WorkspaceTaskRow.workspace_id == workspace_id,
                WorkspaceTaskRow.assignee_id == assignee_id,
                WorkspaceTaskRow.status != "COMPLETED",
            )
        )
        return list(result.scalars().all())

    async def reassign(self, task: WorkspaceTaskRow, assignee_id: UUID,
                       note: str) -> WorkspaceTaskRow:
        task.assignee_id = assignee_id
        task.description = f"{task.description}\n\n{note}" if task.description else note
        task.updated_at = utc_now()
        await self._session.flush()
        return task


class WorkspaceChannelRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, workspace_id: UUID, name: str, channel_type: str,
                     description: str = "", is_private: bool = False) -> WorkspaceChannelRow:
        row = WorkspaceChannelRow(
            channel_id=new_uuid7(), workspace_id=workspace_id, name=name,
            channel_type=channel_type, description=description,
            is_private=is_private, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_by_workspace(self, workspace_id: UUID) -> list[WorkspaceChannelRow]:
        result = await self._session.execute(
            select(WorkspaceChannelRow)
            .where(WorkspaceChannelRow.workspace_id == workspace_id)
            .order_by(WorkspaceChannelRow.created_at)
        )
        return list(result.scalars().all())


class WorkspaceTemplateRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, template_id: UUID, name: str, structure_json: dict,
                     description: str = "", category: str = "GENERAL",
                     created_by: UUID | None = None) -> WorkspaceTemplateRow:
        row = WorkspaceTemplateRow(
            template_id=template_id, name=name, description=description,
            category=category, structure_json=structure_json, usage_count=0,
            created_by=created_by, created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, template_id: UUID) -> WorkspaceTemplateRow | None:
        return await self._session.get(WorkspaceTemplateRow, template_id)

    async def increment_usage(self, template_id: UUID) -> WorkspaceTemplateRow | None:
        row = await self.get(template_id)
        if row is not None:
            row.usage_count += 1
            await self._session.flush()
        return row


class WorkspaceStore:
    """Data-access facade over one session.

    Groups the repositories the lifecycle components need so they can be
    handed a single collaborator.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.events = EventRepository(session)
        self.workspaces = WorkspaceRepository(session)
        self.members = TeamMemberRepository(session)
        self.tasks = WorkspaceTaskRepository(session)
        self.channels = WorkspaceChannelRepository(session)
        self.templates = WorkspaceTemplateRepository(session)

    def savepoint(self):
        """Begin a SAVEPOINT; use as ``async with store.savepoint():``."""
        return self._session.begin_nested()
