"""Imperative operations on a single workspace.

Owns permission checks and the direct mutations: provisioning, settings
updates, wind-down, dissolution, emergency revocation, early departure,
template application, membership and task creation.

Every mutation runs under the workspace's lock and re-reads the row once the
lock is held, so a concurrent sweep and a user-triggered dissolve never both
apply side effects. The orchestrator reaches the state-changing paths through
the system-level methods at the bottom (no actor, no permission check).
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from eventspace.db.tables import (
    EventRow,
    TeamMemberRow,
    WorkspaceChannelRow,
    WorkspaceRow,
    WorkspaceTaskRow,
)
from eventspace.lifecycle.errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    best_effort,
)
from eventspace.lifecycle.locks import WorkspaceLocks
from eventspace.lifecycle.notifications import WorkspaceNotifier
from eventspace.lifecycle.permissions import default_permissions, has_any_permission
from eventspace.lifecycle.transitions import check_transition
from eventspace.models.common import (
    ChannelType,
    DissolutionReason,
    EventStatus,
    MemberStatus,
    Permission,
    TaskPriority,
    TaskStatus,
    WorkspaceRole,
    WorkspaceStatus,
    ensure_utc,
    new_uuid7,
    utc_now,
)
from eventspace.models.workspace import (
    DEFAULT_RETENTION_PERIOD_DAYS,
    DepartureReport,
    TaskSummary,
    TemplateStructure,
    WorkspacePatch,
    WorkspaceSettings,
)
from eventspace.repositories.workspace import WorkspaceStore

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS: tuple[tuple[str, ChannelType, str], ...] = (
    ("general", ChannelType.GENERAL, "General team discussions"),
    ("announcements", ChannelType.ANNOUNCEMENT, "Important announcements and updates"),
    ("tasks", ChannelType.TASK_SPECIFIC, "Task-related discussions"),
)

TEMPLATE_TASK_TAG = "template-generated"


@dataclass
class WorkspaceDetail:
    """A workspace with the rows a member-facing read needs."""

    workspace: WorkspaceRow
    event: EventRow | None
    members: list[TeamMemberRow]
    channels: list[WorkspaceChannelRow]
    task_summary: TaskSummary


def event_has_ended(event: EventRow, now: datetime) -> bool:
    return ensure_utc(event.end_date) < now


def retention_days(workspace: WorkspaceRow) -> int:
    """Retention period from the settings blob; 0 is a valid value."""
    value = (workspace.settings_json or {}).get("retention_period_days")
    if value is None:
        return DEFAULT_RETENTION_PERIOD_DAYS
    return int(value)


def scheduled_dissolution_date(workspace: WorkspaceRow, event: EventRow) -> datetime:
    return ensure_utc(event.end_date) + timedelta(days=retention_days(workspace))


def summarize_tasks(tasks: list[WorkspaceTaskRow], now: datetime) -> TaskSummary:
    return TaskSummary(
        total=len(tasks),
        completed=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
        in_progress=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
        overdue=sum(
            1 for t in tasks
            if t.due_date is not None
            and ensure_utc(t.due_date) < now
            and t.status != TaskStatus.COMPLETED
        ),
    )


class WorkspaceOperations:
    """Permission-checked mutations on one workspace at a time."""

    def __init__(
        self,
        *,
        store: WorkspaceStore,
        locks: WorkspaceLocks,
        notifier: WorkspaceNotifier | None = None,
        default_retention_days: int = DEFAULT_RETENTION_PERIOD_DAYS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._locks = locks
        self._notifier = notifier or WorkspaceNotifier()
        self._default_retention_days = default_retention_days
        self._clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, workspace_id: UUID) -> WorkspaceRow:
        row = await self._store.workspaces.get(workspace_id)
        if row is None:
            msg = f"Workspace {workspace_id} not found."
            raise NotFoundError(msg)
        return await self._store.workspaces.refresh(row)

    async def _load_event(self, event_id: UUID) -> EventRow:
        event = await self._store.events.get(event_id)
        if event is None:
            msg = f"Event {event_id} not found."
            raise NotFoundError(msg)
        return event

    async def _require_permission(self, workspace_id: UUID, user_id: UUID,
                                  *permissions: Permission) -> TeamMemberRow:
        member = await self._store.members.get_active(workspace_id, user_id)
        if member is None:
            msg = "Access denied: User is not a member of this workspace."
            raise ForbiddenError(msg)
        if not has_any_permission(member, *permissions):
            wanted = " or ".join(p.value for p in permissions)
            msg = f"Access denied: User does not have {wanted} permission."
            raise ForbiddenError(msg)
        return member

    async def _apply_dissolution(self, row: WorkspaceRow,
                                 reason: DissolutionReason) -> None:
        now = self._clock()
        row.status = WorkspaceStatus.DISSOLVED
        row.dissolved_at = now
        row.dissolution_reason = reason
        await self._store.workspaces.save(row)
        revoked = await self._store.members.deactivate_all_active(row.workspace_id, now)
        logger.info(
            "Workspace %s dissolved at %s (%s); revoked %d memberships",
            row.workspace_id, now.isoformat(), reason, len(revoked),
        )
        await best_effort(
            self._notifier.workspace_dissolved(
                workspace_id=row.workspace_id, reason=reason, members=revoked,
            ),
            f"dissolution notice for workspace {row.workspace_id}",
        )

    async def _notify_wind_down(self, row: WorkspaceRow) -> None:
        event = await self._store.events.get(row.event_id)
        members = await self._store.members.list_by_workspace(
            row.workspace_id, status=MemberStatus.ACTIVE,
        )
        await best_effort(
            self._notifier.wind_down_started(
                workspace_id=row.workspace_id,
                event_name=event.name if event else "",
                event_end_date=ensure_utc(event.end_date) if event else self._clock(),
                members=members,
            ),
            f"wind-down notice for workspace {row.workspace_id}",
        )

    # ------------------------------------------------------------------
    # Provisioning and reads
    # ------------------------------------------------------------------

    async def provision(self, event_id: UUID, actor: UUID) -> WorkspaceRow:
        """Create the event's workspace, its owner membership and default channels.

        The workspace only becomes ACTIVE once the owner and channels exist.

        Raises:
            NotFoundError: Event missing.
            ForbiddenError: Actor is not the event organizer.
            ConflictError: A workspace already exists for the event.
        """
        async with self._locks.for_event(event_id):
            event = await self._load_event(event_id)
            if event.organizer_id != actor:
                msg = "Only event organizers can provision workspaces."
                raise ForbiddenError(msg)

            if await self._store.workspaces.get_by_event(event_id) is not None:
                msg = "Workspace already exists for this event."
                raise ConflictError(msg)

            settings = WorkspaceSettings(retention_period_days=self._default_retention_days)
            row = await self._store.workspaces.create(
                workspace_id=new_uuid7(),
                event_id=event_id,
                name=f"{event.name} Workspace",
                description=f"Collaborative workspace for {event.name}",
                settings_json=settings.model_dump(mode="json"),
            )

            await self._store.members.create(
                workspace_id=row.workspace_id,
                user_id=actor,
                role=WorkspaceRole.WORKSPACE_OWNER,
                permissions=default_permissions(WorkspaceRole.WORKSPACE_OWNER),
                invited_by=actor,
            )
            for name, channel_type, description in DEFAULT_CHANNELS:
                await self._store.channels.create(
                    workspace_id=row.workspace_id, name=name,
                    channel_type=channel_type, description=description,
                )

            row.status = WorkspaceStatus.ACTIVE
            await self._store.workspaces.save(row)

        logger.info("Workspace %s provisioned for event %s", row.workspace_id, event_id)
        return row

    async def _detail(self, row: WorkspaceRow, actor: UUID) -> WorkspaceDetail:
        if await self._store.members.get_membership(row.workspace_id, actor) is None:
            msg = "Access denied: User is not a member of this workspace."
            raise ForbiddenError(msg)
        tasks = await self._store.tasks.list_by_workspace(row.workspace_id)
        return WorkspaceDetail(
            workspace=row,
            event=await self._store.events.get(row.event_id),
            members=await self._store.members.list_by_workspace(row.workspace_id),
            channels=await self._store.channels.list_by_workspace(row.workspace_id),
            task_summary=summarize_tasks(tasks, self._clock()),
        )

    async def get_workspace(self, workspace_id: UUID, actor: UUID) -> WorkspaceDetail:
        row = await self._store.workspaces.get(workspace_id)
        if row is None:
            msg = f"Workspace {workspace_id} not found."
            raise NotFoundError(msg)
        return await self._detail(row, actor)

    async def get_workspace_by_event(self, event_id: UUID, actor: UUID) -> WorkspaceDetail:
        row = await self._store.workspaces.get_by_event(event_id)
        if row is None:
            msg = f"No workspace found for event {event_id}."
            raise NotFoundError(msg)
        return await self._detail(row, actor)

    # ------------------------------------------------------------------
    # User-triggered lifecycle operations
    # ------------------------------------------------------------------

    async def update_workspace(self, workspace_id: UUID, actor: UUID,
                               patch: WorkspacePatch) -> WorkspaceRow:
        """Apply a partial update. Only fields present in the patch change."""
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            await self._require_permission(workspace_id, actor, Permission.MANAGE_WORKSPACE)
            if row.status == WorkspaceStatus.DISSOLVED:
                msg = "Cannot update a dissolved workspace."
                raise InvalidStateError(msg)

            if patch.name is not None:
                row.name = patch.name
            if patch.description is not None:
                row.description = patch.description
            if patch.settings is not None:
                current = WorkspaceSettings.model_validate(row.settings_json)
                changes = patch.settings.model_dump(exclude_unset=True, exclude_none=True)
                row.settings_json = current.model_copy(update=changes).model_dump(mode="json")

            return await self._store.workspaces.save(row)

    async def initiate_wind_down(self, workspace_id: UUID, actor: UUID) -> WorkspaceRow:
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            await self._require_permission(workspace_id, actor, Permission.MANAGE_WORKSPACE)
            if row.status != WorkspaceStatus.ACTIVE:
                msg = "Can only initiate wind-down for active workspaces."
                raise InvalidStateError(msg)

            row.status = WorkspaceStatus.WINDING_DOWN
            await self._store.workspaces.save(row)
            logger.info("Workspace %s winding down (initiated by %s)", workspace_id, actor)
            await self._notify_wind_down(row)
            return row

    async def dissolve(self, workspace_id: UUID, actor: UUID) -> WorkspaceRow:
        """Dissolve now, bypassing the retention period.

        A workspace that is already DISSOLVED is returned unchanged.

        Raises:
            InvalidStateError: Event has neither ended nor completed, or the
                current status cannot move to DISSOLVED.
        """
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            if row.status == WorkspaceStatus.DISSOLVED:
                logger.info("Workspace %s already dissolved; nothing to do", workspace_id)
                return row

            await self._require_permission(workspace_id, actor, Permission.MANAGE_WORKSPACE)
            event = await self._load_event(row.event_id)
            if not (event_has_ended(event, self._clock())
                    or event.status == EventStatus.COMPLETED):
                msg = "Cannot dissolve workspace before event completion."
                raise InvalidStateError(msg)

            result = check_transition(row.status, WorkspaceStatus.DISSOLVED)
            if not result.valid:
                raise InvalidStateError(result.reason)

            await self._apply_dissolution(row, DissolutionReason.MANUAL)
            return row

    async def emergency_revoke(self, workspace_id: UUID, actor: UUID,
                               reason: str) -> WorkspaceRow:
        """Revoke every membership and dissolve immediately, whatever the state."""
        if not reason or not reason.strip():
            msg = "A reason is required for emergency revocation."
            raise InvalidStateError(msg)

        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            await self._require_permission(workspace_id, actor, Permission.MANAGE_WORKSPACE)

            now = self._clock()
            revoked = await self._store.members.deactivate_all_active(workspace_id, now)
            if row.status != WorkspaceStatus.DISSOLVED:
                row.status = WorkspaceStatus.DISSOLVED
                row.dissolved_at = now
            # EMERGENCY is never restorable, even over an earlier CANCELLED dissolution.
            row.dissolution_reason = DissolutionReason.EMERGENCY
            row.revocation_reason = reason.strip()
            await self._store.workspaces.save(row)

        logger.warning(
            "Emergency access revocation for workspace %s by %s: %s (%d memberships revoked)",
            workspace_id, actor, reason, len(revoked),
        )
        return row

    async def handle_early_departure(self, workspace_id: UUID, departing_user_id: UUID,
                                     manager: UUID) -> DepartureReport:
        """Deactivate a departing member and hand their open tasks to the manager.

        COMPLETED tasks keep their assignee.
        """
        async with self._locks.for_workspace(workspace_id):
            await self._load(workspace_id)
            manager_member = await self._store.members.get_active(workspace_id, manager)
            if manager_member is None:
                msg = "Manager is not an active member of this workspace."
                raise NotFoundError(msg)
            if not has_any_permission(manager_member, Permission.MANAGE_TEAM):
                msg = "Access denied: User does not have MANAGE_TEAM permission."
                raise ForbiddenError(msg)
            if departing_user_id == manager:
                msg = "A manager cannot reassign tasks to themselves on their own departure."
                raise InvalidStateError(msg)

            departing = await self._store.members.get_active(workspace_id, departing_user_id)
            if departing is None:
                msg = "Team member not found or already inactive."
                raise NotFoundError(msg)

            await self._store.members.deactivate(departing, self._clock())

            note = (
                "[REASSIGNED: Originally assigned to departing team member "
                f"{departing_user_id}, reassigned to {manager}]"
            )
            open_tasks = await self._store.tasks.list_open_by_assignee(
                workspace_id, departing.member_id,
            )
            for task in open_tasks:
                await self._store.tasks.reassign(task, manager_member.member_id, note)

        logger.info(
            "Reassigned %d tasks from departing member %s to manager %s in workspace %s",
            len(open_tasks), departing_user_id, manager, workspace_id,
        )
        return DepartureReport(
            member_id=departing.member_id,
            reassigned_to=manager_member.member_id,
            reassigned_task_ids=[t.task_id for t in open_tasks],
        )

    async def apply_template(self, workspace_id: UUID, template_id: UUID,
                             actor: UUID) -> WorkspaceRow:
        """Add a template's channels and tasks to the workspace.

        Channels whose name already exists are skipped. Task due dates count
        back from the event start date.
        """
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            await self._require_permission(workspace_id, actor, Permission.MANAGE_WORKSPACE)
            if row.status == WorkspaceStatus.DISSOLVED:
                msg = "Cannot apply a template to a dissolved workspace."
                raise InvalidStateError(msg)

            template = await self._store.templates.get(template_id)
            if template is None:
                msg = f"Template {template_id} not found."
                raise NotFoundError(msg)
            structure = TemplateStructure.model_validate(template.structure_json)
            event = await self._load_event(row.event_id)

            existing = {c.name for c in await self._store.channels.list_by_workspace(workspace_id)}
            for channel in structure.channels:
                if channel.name in existing:
                    continue
                await self._store.channels.create(
                    workspace_id=workspace_id, name=channel.name,
                    channel_type=channel.channel_type,
                    description=channel.description, is_private=channel.is_private,
                )
                existing.add(channel.name)

            start = ensure_utc(event.start_date)
            created = 0
            for category in structure.task_categories:
                for task in category.tasks:
                    await self._store.tasks.create(
                        workspace_id=workspace_id, title=task.title,
                        description=task.description, category=category.category,
                        priority=task.priority,
                        due_date=start - timedelta(days=task.days_before_event),
                        tags=[TEMPLATE_TASK_TAG],
                    )
                    created += 1

            row.template_id = template_id
            await self._store.workspaces.save(row)
            await self._store.templates.increment_usage(template_id)

        logger.info(
            "Template %s applied to workspace %s (%d tasks)", template_id, workspace_id, created,
        )
        return row

    async def add_member(self, workspace_id: UUID, actor: UUID, user_id: UUID,
                         role: WorkspaceRole,
                         permissions: list[str] | None = None) -> TeamMemberRow:
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            await self._require_permission(
                workspace_id, actor, Permission.MANAGE_TEAM, Permission.INVITE_MEMBERS,
            )
            if row.status not in (WorkspaceStatus.ACTIVE, WorkspaceStatus.WINDING_DOWN):
                msg = f"Cannot add members to a {row.status} workspace."
                raise InvalidStateError(msg)
            if role == WorkspaceRole.WORKSPACE_OWNER:
                msg = "The workspace owner is assigned at provisioning."
                raise InvalidStateError(msg)

            granted = permissions if permissions is not None else default_permissions(role)
            existing = await self._store.members.get_membership(workspace_id, user_id)
            if existing is not None:
                if existing.status == MemberStatus.ACTIVE:
                    msg = f"User {user_id} is already an active member."
                    raise ConflictError(msg)
                existing.role = role
                existing.permissions = granted
                existing.invited_by = actor
                return await self._store.members.reactivate(existing)

            return await self._store.members.create(
                workspace_id=workspace_id, user_id=user_id, role=role,
                permissions=granted, invited_by=actor,
            )

    async def create_task(self, workspace_id: UUID, actor: UUID, *, title: str,
                          description: str = "", category: str = "GENERAL",
                          priority: TaskPriority = TaskPriority.MEDIUM,
                          status: TaskStatus = TaskStatus.TODO,
                          assignee_id: UUID | None = None,
                          due_date: datetime | None = None) -> WorkspaceTaskRow:
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            await self._require_permission(
                workspace_id, actor, Permission.CREATE_TASKS, Permission.MANAGE_TASKS,
            )
            if row.status == WorkspaceStatus.DISSOLVED:
                msg = "Cannot create tasks in a dissolved workspace."
                raise InvalidStateError(msg)
            if assignee_id is not None:
                assignee = await self._store.members.get(assignee_id)
                if (assignee is None or assignee.workspace_id != workspace_id
                        or assignee.status != MemberStatus.ACTIVE):
                    msg = f"Assignee {assignee_id} is not an active member of this workspace."
                    raise NotFoundError(msg)

            return await self._store.tasks.create(
                workspace_id=workspace_id, title=title, description=description,
                category=category, priority=priority, status=status,
                assignee_id=assignee_id, due_date=due_date,
            )

    # ------------------------------------------------------------------
    # System-level mutations (orchestrator and sweep)
    # ------------------------------------------------------------------

    async def mark_winding_down(self, workspace_id: UUID) -> bool:
        """ACTIVE -> WINDING_DOWN. Returns False when the workspace is not ACTIVE."""
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            if row.status != WorkspaceStatus.ACTIVE:
                return False
            row.status = WorkspaceStatus.WINDING_DOWN
            await self._store.workspaces.save(row)
            logger.info("Workspace %s moved to winding down after event completion", workspace_id)
            await self._notify_wind_down(row)
            return True

    async def perform_dissolution(
        self,
        workspace_id: UUID,
        reason: DissolutionReason,
        *,
        when: Callable[[WorkspaceRow], bool] | None = None,
    ) -> bool:
        """Run the dissolution side effects.

        when is evaluated against the freshly re-read row under the lock.
        Returns False, with no side effects, if the workspace is already
        DISSOLVED or when rejects it.
        """
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            if row.status == WorkspaceStatus.DISSOLVED:
                return False
            if when is not None and not when(row):
                return False
            await self._apply_dissolution(row, reason)
            return True

    async def restore_after_cancellation(self, workspace_id: UUID) -> bool:
        """Undo a CANCELLED dissolution.

        Members revoked by that dissolution come back; members who had left
        before it stay INACTIVE. Dissolutions for any other reason are final.
        """
        async with self._locks.for_workspace(workspace_id):
            row = await self._load(workspace_id)
            if (row.status != WorkspaceStatus.DISSOLVED
                    or row.dissolution_reason != DissolutionReason.CANCELLED):
                return False

            dissolved_at = ensure_utc(row.dissolved_at) if row.dissolved_at else None
            row.status = WorkspaceStatus.ACTIVE
            row.dissolved_at = None
            row.dissolution_reason = None
            await self._store.workspaces.save(row)

            restored: list[TeamMemberRow] = []
            if dissolved_at is not None:
                restored = await self._store.members.list_left_since(workspace_id, dissolved_at)
                for member in restored:
                    await self._store.members.reactivate(member)

        logger.info(
            "Workspace %s reactivated after event reactivation (%d members restored)",
            workspace_id, len(restored),
        )
        return True
