import logging
import secrets
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..core.background_tasks import NotificationDispatcher
from ..core.exceptions import InvalidReferenceError, NotFoundError, PollValidationError
from ..models.poll import Participant, Poll, PollEvent
from ..repositories.poll_repository import (
    BOOKED_EVENTS,
    VOTES,
    ParticipantRepository,
    PollEventRepository,
    PollRepository,
)
from ..schemas.poll import (
    MailUpdate,
    ParticipantCreate,
    ParticipantRead,
    PollCreate,
    PollEventCreate,
    PollEventRead,
    PollRead,
    PollStatsRead,
)
from ..utils.datetime_utils import as_utc, format_event_range, serialize_datetime
from .mail_service import MailService

logger = logging.getLogger(__name__)

YES_MARKER = {"class": "p-yes", "icon": "✓"}
MAYBE_MARKER = {"class": "p-maybe", "icon": "?"}
NO_MARKER = {"class": "p-no", "icon": "X"}


def tokens_match(expected: str | None, supplied: str | None) -> bool:
    if not expected or not supplied:
        return False
    return secrets.compare_digest(expected.encode(), supplied.encode())


class PollService:
    """
    Poll, event and participation rules on top of the repositories.

    Every public method is one unit of work and commits before returning.
    Mails are dispatched after the commit and never awaited.
    """

    db: AsyncSession

    def __init__(
        self,
        db: AsyncSession,
        mail_service: MailService,
        notifications: NotificationDispatcher,
    ):
        self.db = db
        self.mail_service = mail_service
        self.notifications = notifications
        self.polls = PollRepository(db)
        self.events = PollEventRepository(db)
        self.participants = ParticipantRepository(db)

    async def _require_poll(self, id: int) -> Poll:
        poll = await self.polls.find_by_id(id, populate=BOOKED_EVENTS)
        if poll is None:
            raise NotFoundError("Poll", id)
        return poll

    async def _require_participant(self, id: int, participant_id: int) -> Participant:
        participant = await self.participants.find_by_id(participant_id, populate=VOTES)
        if participant is None or participant.poll_id != id:
            raise NotFoundError("Participant", participant_id)
        return participant

    async def get_polls(
        self, token: str, stats: bool = False
    ) -> list[PollRead] | list[PollStatsRead]:
        if not token:
            return []

        admin_polls = await self.polls.find(
            Poll.admin_token == token, populate=BOOKED_EVENTS
        )
        participant_polls = await self.polls.find_participated(token)

        unique: dict[int, Poll] = {}
        for poll in [*admin_polls, *participant_polls]:
            unique.setdefault(poll.id, poll)

        if not stats:
            return [PollRead.model_validate(poll) for poll in unique.values()]

        results: list[PollStatsRead] = []
        for poll in unique.values():
            poll_dict = PollRead.model_validate(poll).model_dump()
            poll_dict["events"] = await self.events.count(PollEvent.poll_id == poll.id)
            poll_dict["participants"] = await self.participants.count(
                Participant.poll_id == poll.id
            )
            results.append(PollStatsRead.model_validate(poll_dict))
        return results

    async def get_poll(self, id: int) -> PollRead:
        return PollRead.model_validate(await self._require_poll(id))

    async def post_poll(self, dto: PollCreate) -> PollRead:
        poll = await self.polls.create(**dto.model_dump(), booked_events=[])
        await self.db.commit()

        logger.info(f"Poll {poll.id} created")
        return await self.get_poll(poll.id)

    async def put_poll(self, id: int, dto: PollCreate) -> PollRead:
        poll = await self.polls.find_by_id_and_update(
            id, dto.model_dump(), populate=BOOKED_EVENTS
        )
        if poll is None:
            raise NotFoundError("Poll", id)

        await self.db.commit()
        return await self.get_poll(id)

    async def clone_poll(self, id: int) -> PollRead:
        source = await self._require_poll(id)
        source_events = await self.events.find_for_poll(id)

        clone = await self.polls.create(
            title=f"{source.title} (clone)",
            description=source.description,
            location=source.location,
            settings=dict(source.settings or {}),
            admin_token=source.admin_token,
            admin_mail=source.admin_mail,
            booked_events=[],
        )
        for event in source_events:
            _ = await self.events.create(
                poll_id=clone.id, start=event.start, end=event.end, note=event.note
            )
        await self.db.commit()

        logger.info(
            f"Poll {id} cloned to {clone.id} with {len(source_events)} events"
        )
        return await self.get_poll(clone.id)

    async def delete_poll(self, id: int) -> PollRead:
        poll = await self._require_poll(id)
        deleted = PollRead.model_validate(poll)

        # dependents before the poll itself
        await self.participants.remove_all_votes(id)
        participants = await self.participants.delete_many(Participant.poll_id == id)
        _ = await self.polls.clear_bookings(id)
        events = await self.events.delete_many(PollEvent.poll_id == id)
        _ = await self.polls.find_by_id_and_delete(id, populate=BOOKED_EVENTS)
        await self.db.commit()

        logger.info(
            f"Poll {id} deleted with {events} events and {participants} participants"
        )
        return deleted

    async def is_admin(self, id: int, token: str | None) -> bool:
        poll = await self._require_poll(id)
        return tokens_match(poll.admin_token, token)

    async def is_participant(
        self, id: int, participant_id: int, token: str | None
    ) -> bool:
        participant = await self._require_participant(id, participant_id)
        return tokens_match(participant.token, token)

    async def get_events(self, id: int) -> list[PollEventRead]:
        _ = await self._require_poll(id)
        events = await self.events.find_for_poll(id)
        return [PollEventRead.model_validate(event) for event in events]

    async def post_events(
        self, id: int, incoming: Sequence[PollEventCreate]
    ) -> list[PollEventRead]:
        """
        Reconcile the poll's events with ``incoming``.

        Entries without a known id are created, known ids with a different start
        or end are updated in place, and stored events missing from ``incoming``
        are deleted. Votes for updated and deleted events are removed from every
        participant, so no vote refers to a slot the voter never saw.
        """
        _ = await self._require_poll(id)
        if len(incoming) > settings.POLL_MAX_EVENTS:
            raise PollValidationError(
                f"A poll can have at most {settings.POLL_MAX_EVENTS} events"
            )

        listed_ids = [event.id for event in incoming if event.id is not None]
        incoming_ids = set(listed_ids)
        if len(incoming_ids) != len(listed_ids):
            duplicates = sorted({i for i in listed_ids if listed_ids.count(i) > 1})
            raise PollValidationError(
                f"Events {', '.join(str(i) for i in duplicates)} are listed more than once"
            )

        current = {event.id: event for event in await self.events.find_for_poll(id)}

        added: list[PollEventCreate] = []
        updated_ids: list[int] = []
        for event in incoming:
            stored = current.get(event.id) if event.id is not None else None
            if stored is None:
                added.append(event)
                continue

            if as_utc(stored.start) != as_utc(event.start) or as_utc(
                stored.end
            ) != as_utc(event.end):
                stored.start = event.start
                stored.end = event.end
                stored.note = event.note
                updated_ids.append(stored.id)
            elif stored.note != event.note:
                stored.note = event.note

        deleted_ids = [event_id for event_id in current if event_id not in incoming_ids]

        for event in added:
            _ = await self.events.create(
                poll_id=id, start=event.start, end=event.end, note=event.note
            )

        removed_votes = await self.participants.remove_votes(
            id, [*updated_ids, *deleted_ids]
        )
        if deleted_ids:
            _ = await self.polls.unbook_events(deleted_ids)
            _ = await self.events.delete_many(PollEvent.id.in_(deleted_ids))

        await self.db.commit()

        logger.info(
            f"Events of poll {id} reconciled: {len(added)} added, "
            f"{len(updated_ids)} updated, {len(deleted_ids)} deleted, "
            f"{removed_votes} votes removed"
        )
        return await self.get_events(id)

    def _resolve_votes(
        self, poll_id: int, event_ids: Iterable[int], events: dict[int, PollEvent]
    ) -> list[PollEvent]:
        ids = list(dict.fromkeys(event_ids))
        unknown = [event_id for event_id in ids if event_id not in events]
        if unknown:
            raise InvalidReferenceError(poll_id, unknown)
        return [events[event_id] for event_id in ids]

    def _participant_read(self, participant: Participant, reveal: bool) -> ParticipantRead:
        read = ParticipantRead.model_validate(participant)
        if reveal:
            return read
        return read.model_copy(update={"token": None, "mail": None})

    async def get_participants(
        self, id: int, token: str | None = None
    ) -> list[ParticipantRead]:
        poll = await self._require_poll(id)
        participants = await self.participants.find_for_poll(id)
        admin = tokens_match(poll.admin_token, token)

        return [
            self._participant_read(
                participant, reveal=admin or tokens_match(participant.token, token)
            )
            for participant in participants
        ]

    async def post_participation(
        self, id: int, dto: ParticipantCreate
    ) -> ParticipantRead:
        poll = await self._require_poll(id)
        events = await self.events.find_for_poll(id)
        events_by_id = {event.id: event for event in events}

        participant = await self.participants.create(
            poll_id=id,
            name=dto.name,
            mail=dto.mail,
            token=dto.token,
            participation=self._resolve_votes(id, dto.participation, events_by_id),
            indeterminate_participation=self._resolve_votes(
                id, dto.indeterminate_participation, events_by_id
            ),
        )
        await self.db.commit()

        participant = await self._require_participant(id, participant.id)
        result = ParticipantRead.model_validate(participant)
        logger.info(f"Participant {participant.id} joined poll {id}")

        poll_data = PollRead.model_validate(poll).model_dump(mode="json")
        participant_data = result.model_dump(mode="json")

        if poll.admin_mail:
            self._notify_admin(poll, poll_data, participant, participant_data, events)

        if participant.mail:
            _ = self.notifications.dispatch(
                self.mail_service.send_mail(
                    participant.name,
                    participant.mail,
                    "Participated in Poll",
                    "participated",
                    {"poll": poll_data, "participant": participant_data},
                ),
                name=f"participated-{participant.id}",
            )

        return result

    def _notify_admin(
        self,
        poll: Poll,
        poll_data: dict[str, Any],
        participant: Participant,
        participant_data: dict[str, Any],
        events: Sequence[PollEvent],
    ) -> None:
        yes = {event.id for event in participant.participation}
        maybe = {event.id for event in participant.indeterminate_participation}

        markers = [
            YES_MARKER if event.id in yes else MAYBE_MARKER if event.id in maybe else NO_MARKER
            for event in events
        ]

        _ = self.notifications.dispatch(
            self.mail_service.send_mail(
                "Poll Admin",
                poll.admin_mail or "",
                "Updates in Poll",
                "participant",
                {
                    "poll": poll_data,
                    "participant": participant_data,
                    "events": [
                        {
                            "start": serialize_datetime(event.start),
                            "end": serialize_datetime(event.end),
                            "label": format_event_range(event.start, event.end),
                        }
                        for event in events
                    ],
                    "participants": [
                        {"name": participant.name, "participation": markers}
                    ],
                },
            ),
            name=f"admin-info-{poll.id}",
        )

    async def edit_participation(
        self, id: int, participant_id: int, dto: ParticipantCreate
    ) -> ParticipantRead:
        participant = await self._require_participant(id, participant_id)
        events_by_id = {event.id: event for event in await self.events.find_for_poll(id)}

        participant.name = dto.name
        participant.mail = dto.mail
        participant.token = dto.token
        participant.participation = self._resolve_votes(
            id, dto.participation, events_by_id
        )
        participant.indeterminate_participation = self._resolve_votes(
            id, dto.indeterminate_participation, events_by_id
        )
        await self.db.commit()

        return ParticipantRead.model_validate(
            await self._require_participant(id, participant_id)
        )

    async def delete_participation(
        self, id: int, participant_id: int
    ) -> ParticipantRead:
        participant = await self._require_participant(id, participant_id)
        deleted = ParticipantRead.model_validate(participant)

        _ = await self.participants.find_by_id_and_delete(participant_id, populate=VOTES)
        await self.db.commit()

        logger.info(f"Participant {participant_id} removed from poll {id}")
        return deleted

    async def set_mail(self, dto: MailUpdate) -> int:
        updated = await self.participants.update_many(
            Participant.token == dto.token,
            values={"mail": dto.mail, "token": dto.token},
        )
        await self.db.commit()

        logger.info(f"Mail updated for {updated} participations")
        return updated

    async def book_events(self, id: int, event_ids: Sequence[int]) -> PollRead:
        poll = await self._require_poll(id)
        booked = await self.events.find(
            PollEvent.poll_id == id,
            PollEvent.id.in_(list(event_ids)),
            order_by=(PollEvent.start, PollEvent.id),
        )
        if len(booked) != len(set(event_ids)):
            logger.warning(
                f"Booking poll {id}: ignored event ids outside the poll "
                f"{sorted(set(event_ids) - {event.id for event in booked})}"
            )

        poll.booked_events = booked
        participants = await self.participants.find_for_poll(id)
        await self.db.commit()

        result = await self.get_poll(id)
        poll_data = result.model_dump(mode="json")

        for participant in participants:
            if not participant.mail:
                continue

            voted = {
                event.id
                for event in [
                    *participant.participation,
                    *participant.indeterminate_participation,
                ]
            }
            appointments = [
                format_event_range(event.start, event.end)
                + (" *" if event.id in voted else "")
                for event in booked
            ]

            _ = self.notifications.dispatch(
                self.mail_service.send_mail(
                    participant.name,
                    participant.mail,
                    "Poll booked",
                    "book",
                    {
                        "appointments": appointments,
                        "poll": poll_data,
                        "participant": ParticipantRead.model_validate(
                            participant
                        ).model_dump(mode="json"),
                    },
                ),
                name=f"book-{id}-{participant.id}",
            )

        logger.info(f"Poll {id} booked with {len(booked)} events")
        return result
