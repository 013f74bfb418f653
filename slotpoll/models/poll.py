from datetime import datetime
from typing import Any
from sqlalchemy import JSON, Column, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from .base import Base, UTCDateTime


poll_booked_events = Table(
    "poll_booked_events",
    Base.metadata,
    Column(
        "poll_id",
        ForeignKey("polls.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "event_id",
        ForeignKey("poll_events.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

participant_participation = Table(
    "participant_participation",
    Base.metadata,
    Column(
        "participant_id",
        ForeignKey("participants.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "event_id",
        ForeignKey("poll_events.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)

participant_indeterminate_participation = Table(
    "participant_indeterminate_participation",
    Base.metadata,
    Column(
        "participant_id",
        ForeignKey("participants.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "event_id",
        ForeignKey("poll_events.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)

VOTE_TABLES = (participant_participation, participant_indeterminate_participation)


class Poll(Base):
    __tablename__ = "polls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(300))
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    admin_token: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    admin_mail: Mapped[str | None] = mapped_column(String(320))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())

    booked_events: Mapped[list["PollEvent"]] = relationship(
        "PollEvent",
        secondary=poll_booked_events,
        order_by="PollEvent.start",
    )


class PollEvent(Base):
    __tablename__ = "poll_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    note: Mapped[str | None] = mapped_column(String(500))

    poll_id: Mapped[int] = mapped_column(
        ForeignKey("polls.id", ondelete="CASCADE"), index=True
    )


class Participant(Base):
    __tablename__ = "participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    mail: Mapped[str | None] = mapped_column(String(320))
    token: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())

    poll_id: Mapped[int] = mapped_column(
        ForeignKey("polls.id", ondelete="CASCADE"), index=True
    )

    participation: Mapped[list["PollEvent"]] = relationship(
        "PollEvent",
        secondary=participant_participation,
        order_by="PollEvent.start",
    )
    indeterminate_participation: Mapped[list["PollEvent"]] = relationship(
        "PollEvent",
        secondary=participant_indeterminate_participation,
        order_by="PollEvent.start",
    )
