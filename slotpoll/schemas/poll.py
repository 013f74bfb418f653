from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from typing import Any, Self
from datetime import datetime
from ..utils.datetime_utils import as_utc


class PollEventCreate(BaseModel):
    """Incoming slot; an ``id`` marks an existing event of the poll."""

    id: int | None = None
    start: datetime
    end: datetime
    note: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_end_after_start(self) -> Self:
        if as_utc(self.end) < as_utc(self.start):
            raise ValueError("End must not be before start")
        return self


class PollEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_id: int
    start: datetime
    end: datetime
    note: str | None = None


class PollCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=300)
    settings: dict[str, Any] = Field(default_factory=dict)
    admin_token: str = Field(..., min_length=1, max_length=128)
    admin_mail: EmailStr | None = None


class PollRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None = None
    location: str | None = None
    settings: dict[str, Any] = {}
    booked_events: list[PollEventRead] = []
    created_at: datetime | None = None


class PollStatsRead(PollRead):
    events: int = 0
    participants: int = 0


class ParticipantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    mail: EmailStr | None = None
    token: str = Field(..., min_length=1, max_length=128)
    participation: list[int] = []
    indeterminate_participation: list[int] = []


class ParticipantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    poll_id: int
    name: str
    mail: str | None = None
    token: str | None = None
    participation: list[PollEventRead] = []
    indeterminate_participation: list[PollEventRead] = []
    created_at: datetime | None = None


class MailUpdate(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)
    mail: EmailStr


class MailUpdateResult(BaseModel):
    updated: int


class AdminStatus(BaseModel):
    is_admin: bool
