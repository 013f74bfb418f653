from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import selectinload

from ..models.poll import (
    VOTE_TABLES,
    Participant,
    Poll,
    PollEvent,
    poll_booked_events,
)
from .base import CrudRepository

BOOKED_EVENTS = (selectinload(Poll.booked_events),)
VOTES = (
    selectinload(Participant.participation),
    selectinload(Participant.indeterminate_participation),
)


class PollRepository(CrudRepository[Poll]):
    model = Poll

    async def find_participated(self, token: str) -> list[Poll]:
        result = await self.db.execute(
            select(Poll)
            .join(Participant, Participant.poll_id == Poll.id)
            .where(Participant.token == token)
            .options(*BOOKED_EVENTS)
            .order_by(Poll.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().unique().all())

    async def unbook_events(self, event_ids: Sequence[int]) -> int:
        if not event_ids:
            return 0
        result = await self.db.execute(
            delete(poll_booked_events).where(poll_booked_events.c.event_id.in_(event_ids))
        )
        return result.rowcount

    async def clear_bookings(self, poll_id: int) -> int:
        result = await self.db.execute(
            delete(poll_booked_events).where(poll_booked_events.c.poll_id == poll_id)
        )
        return result.rowcount


class PollEventRepository(CrudRepository[PollEvent]):
    model = PollEvent

    async def find_for_poll(self, poll_id: int) -> list[PollEvent]:
        return await self.find(
            PollEvent.poll_id == poll_id, order_by=(PollEvent.start, PollEvent.id)
        )


class ParticipantRepository(CrudRepository[Participant]):
    model = Participant

    async def find_for_poll(self, poll_id: int) -> list[Participant]:
        return await self.find(Participant.poll_id == poll_id, populate=VOTES)

    async def remove_votes(self, poll_id: int, event_ids: Sequence[int]) -> int:
        """Drop yes/maybe entries for ``event_ids`` from every participant of the poll."""
        if not event_ids:
            return 0

        participant_ids = select(Participant.id).where(Participant.poll_id == poll_id)
        removed = 0
        for table in VOTE_TABLES:
            result = await self.db.execute(
                delete(table).where(
                    table.c.event_id.in_(event_ids),
                    table.c.participant_id.in_(participant_ids),
                )
            )
            removed += result.rowcount
        return removed

    async def remove_all_votes(self, poll_id: int) -> None:
        participant_ids = select(Participant.id).where(Participant.poll_id == poll_id)
        for table in VOTE_TABLES:
            _ = await self.db.execute(
                delete(table).where(table.c.participant_id.in_(participant_ids))
            )
