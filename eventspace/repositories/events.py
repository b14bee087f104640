"""Event repository: read access to the event component's table.

The event component owns these rows. create() and update_status() exist for
the component's own writes (and for seeding / tests); the lifecycle code only
reads through get().
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from eventspace.db.tables import EventRow


class EventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, event_id: UUID, name: str, organizer_id: UUID,
                     start_date: datetime, end_date: datetime,
                     status: str = "DRAFT") -> EventRow:
        row = EventRow(
            event_id=event_id, name=name, organizer_id=organizer_id,
            start_date=start_date, end_date=end_date, status=status,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, event_id: UUID) -> EventRow | None:
        return await self._session.get(EventRow, event_id)

    async def update_status(self, event_id: UUID, status: str) -> EventRow | None:
        row = await self.get(event_id)
        if row is not None:
            row.status = status
            await self._session.flush()
        return row


class EventReader(Protocol):
    """The read side of the event component the lifecycle code depends on."""

    async def get(self, event_id: UUID) -> EventRow | None:
        ...
