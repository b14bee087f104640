"""Role -> default capability mapping for workspace memberships."""

from eventspace.db.tables import TeamMemberRow
from eventspace.models.common import Permission, WorkspaceRole

DEFAULT_ROLE_PERMISSIONS: dict[WorkspaceRole, tuple[Permission, ...]] = {
    WorkspaceRole.WORKSPACE_OWNER: (
        Permission.MANAGE_WORKSPACE,
        Permission.MANAGE_TEAM,
        Permission.MANAGE_TASKS,
        Permission.MANAGE_CHANNELS,
        Permission.VIEW_ANALYTICS,
        Permission.MANAGE_PERMISSIONS,
    ),
    WorkspaceRole.TEAM_LEAD: (
        Permission.MANAGE_TASKS,
        Permission.MANAGE_CHANNELS,
        Permission.VIEW_ANALYTICS,
        Permission.INVITE_MEMBERS,
    ),
    WorkspaceRole.EVENT_COORDINATOR: (
        Permission.MANAGE_TASKS,
        Permission.VIEW_ANALYTICS,
        Permission.CREATE_TASKS,
    ),
    WorkspaceRole.VOLUNTEER_MANAGER: (
        Permission.MANAGE_TASKS,
        Permission.CREATE_TASKS,
        Permission.INVITE_MEMBERS,
    ),
    WorkspaceRole.TECHNICAL_SPECIALIST: (
        Permission.CREATE_TASKS,
        Permission.MANAGE_TASKS,
    ),
    WorkspaceRole.MARKETING_LEAD: (
        Permission.CREATE_TASKS,
        Permission.MANAGE_TASKS,
        Permission.MANAGE_CHANNELS,
    ),
    WorkspaceRole.GENERAL_VOLUNTEER: (
        Permission.VIEW_TASKS,
        Permission.UPDATE_TASK_PROGRESS,
    ),
}


def default_permissions(role: WorkspaceRole | str) -> list[str]:
    """Capabilities granted to a role when none are set explicitly."""
    try:
        role = WorkspaceRole(role)
    except ValueError:
        return []
    return [p.value for p in DEFAULT_ROLE_PERMISSIONS[role]]


def effective_permissions(member: TeamMemberRow) -> frozenset[str]:
    """Stored permissions, or the role defaults when unset."""
    if member.permissions is None:
        return frozenset(default_permissions(member.role))
    return frozenset(member.permissions)


def has_any_permission(member: TeamMemberRow, *wanted: Permission) -> bool:
    granted = effective_permissions(member)
    return any(p.value in granted for p in wanted)
