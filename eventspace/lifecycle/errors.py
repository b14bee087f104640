"""Workspace error taxonomy and the best-effort call policy.

API-facing operations raise WorkspaceError subclasses; the HTTP layer maps
each to a status code. Event-hook side effects go through best_effort() so
the event component's own write never fails because of workspace trouble.
"""

import logging
from collections.abc import Awaitable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WorkspaceError(Exception):
    """Base error for workspace lifecycle operations."""

    status_code = 500


class NotFoundError(WorkspaceError):
    """Entity absent."""

    status_code = 404


class ForbiddenError(WorkspaceError):
    """Capability or role check failed."""

    status_code = 403


class ConflictError(WorkspaceError):
    """Duplicate workspace for an event, or duplicate membership."""

    status_code = 409


class ConcurrentModificationError(ConflictError):
    """Workspace row changed underneath this transaction."""


class InvalidStateError(WorkspaceError):
    """Transition not permitted by the state table, or preconditions unmet."""

    status_code = 400


class InternalError(WorkspaceError):
    """Unexpected data-access failure."""

    status_code = 500


async def best_effort(operation: Awaitable[T], description: str) -> T | None:
    """Await operation; log and swallow any failure.

    Returns the operation's result, or None if it raised.
    """
    try:
        return await operation
    except Exception:
        logger.exception("Best-effort operation failed: %s", description)
        return None
