from .base import Base, UTCDateTime
from .poll import (
    VOTE_TABLES,
    Participant,
    Poll,
    PollEvent,
    participant_indeterminate_participation,
    participant_participation,
    poll_booked_events,
)

__all__ = [
    "Base",
    "UTCDateTime",
    "Poll",
    "PollEvent",
    "Participant",
    "poll_booked_events",
    "participant_participation",
    "participant_indeterminate_participation",
    "VOTE_TABLES",
]
