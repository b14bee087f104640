"""Workspace notices. Delivery is out of scope; notices are logged."""

import logging
from datetime import datetime
from uuid import UUID

from eventspace.db.tables import TeamMemberRow

logger = logging.getLogger(__name__)


class WorkspaceNotifier:
    """Logs the notices a delivery channel would send."""

    async def wind_down_started(self, *, workspace_id: UUID, event_name: str,
                                event_end_date: datetime,
                                members: list[TeamMemberRow]) -> int:
        for member in members:
            logger.info(
                "Wind-down notice for user %s: workspace %s (%s) ends %s",
                member.user_id, workspace_id, event_name, event_end_date.isoformat(),
            )
        return len(members)

    async def workspace_dissolved(self, *, workspace_id: UUID, reason: str,
                                  members: list[TeamMemberRow]) -> int:
        for member in members:
            logger.info(
                "Dissolution notice for user %s: workspace %s dissolved (%s)",
                member.user_id, workspace_id, reason,
            )
        return len(members)
