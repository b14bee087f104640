"""Workspace lifecycle transition table.

PROVISIONING -> ACTIVE -> WINDING_DOWN -> DISSOLVED, with WINDING_DOWN -> ACTIVE
as the reactivation edge. DISSOLVED is terminal.

Pure and deterministic: event-aware checks live in the orchestrator.
"""

from dataclasses import dataclass

from eventspace.models.common import WorkspaceStatus

VALID_WORKSPACE_TRANSITIONS: dict[WorkspaceStatus, frozenset[WorkspaceStatus]] = {
    WorkspaceStatus.PROVISIONING: frozenset({WorkspaceStatus.ACTIVE}),
    WorkspaceStatus.ACTIVE: frozenset({
        WorkspaceStatus.WINDING_DOWN,
        WorkspaceStatus.DISSOLVED,
    }),
    WorkspaceStatus.WINDING_DOWN: frozenset({
        WorkspaceStatus.DISSOLVED,
        WorkspaceStatus.ACTIVE,
    }),
    WorkspaceStatus.DISSOLVED: frozenset(),
}


@dataclass(frozen=True)
class TransitionResult:
    valid: bool
    reason: str | None = None


def check_transition(from_status: WorkspaceStatus | str,
                     to_status: WorkspaceStatus | str) -> TransitionResult:
    """Check a (from, to) pair against the table only."""
    try:
        allowed = VALID_WORKSPACE_TRANSITIONS[WorkspaceStatus(from_status)]
    except ValueError:
        allowed = frozenset()
    if to_status not in allowed:
        return TransitionResult(
            valid=False,
            reason=f"Invalid transition from {from_status} to {to_status}",
        )
    return TransitionResult(valid=True)
