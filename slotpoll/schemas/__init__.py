from .common import ErrorResponse
from .poll import (
    AdminStatus,
    MailUpdate,
    MailUpdateResult,
    ParticipantCreate,
    ParticipantRead,
    PollCreate,
    PollEventCreate,
    PollEventRead,
    PollRead,
    PollStatsRead,
)

__all__ = [
    "ErrorResponse",
    "AdminStatus",
    "MailUpdate",
    "MailUpdateResult",
    "ParticipantCreate",
    "ParticipantRead",
    "PollCreate",
    "PollEventCreate",
    "PollEventRead",
    "PollRead",
    "PollStatsRead",
]
