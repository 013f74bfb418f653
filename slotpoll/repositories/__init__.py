from .base import CrudRepository
from .poll_repository import (
    BOOKED_EVENTS,
    VOTES,
    ParticipantRepository,
    PollEventRepository,
    PollRepository,
)

__all__ = [
    "CrudRepository",
    "BOOKED_EVENTS",
    "VOTES",
    "PollRepository",
    "PollEventRepository",
    "ParticipantRepository",
]
