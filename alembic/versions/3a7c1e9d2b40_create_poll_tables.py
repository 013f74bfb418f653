"""create_poll_tables

Revision ID: 3a7c1e9d2b40
Revises:
Create Date: 2026-10-18 14:12:07.418203

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3a7c1e9d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "polls",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=300), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=True),
        sa.Column("admin_token", sa.String(length=128), nullable=False),
        sa.Column("admin_mail", sa.String(length=320), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_polls_admin_token", "polls", ["admin_token"])

    op.create_table(
        "poll_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("poll_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["poll_id"], ["polls.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_poll_events_poll_id", "poll_events", ["poll_id"])

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("mail", sa.String(length=320), nullable=True),
        sa.Column("token", sa.String(length=128), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column("poll_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["poll_id"], ["polls.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_participants_token", "participants", ["token"])
    op.create_index("ix_participants_poll_id", "participants", ["poll_id"])

    op.create_table(
        "poll_booked_events",
        sa.Column("poll_id", sa.Integer(), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["poll_id"], ["polls.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["poll_events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("poll_id", "event_id"),
    )

    for table in ("participant_participation", "participant_indeterminate_participation"):
        op.create_table(
            table,
            sa.Column("participant_id", sa.Integer(), nullable=False),
            sa.Column("event_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(
                ["participant_id"], ["participants.id"], ondelete="CASCADE"
            ),
            sa.ForeignKeyConstraint(
                ["event_id"], ["poll_events.id"], ondelete="CASCADE"
            ),
            sa.PrimaryKeyConstraint("participant_id", "event_id"),
        )
        op.create_index(f"ix_{table}_event_id", table, ["event_id"])


def downgrade() -> None:
    for table in ("participant_indeterminate_participation", "participant_participation"):
        op.drop_index(f"ix_{table}_event_id", table_name=table)
        op.drop_table(table)

    op.drop_table("poll_booked_events")

    op.drop_index("ix_participants_poll_id", table_name="participants")
    op.drop_index("ix_participants_token", table_name="participants")
    op.drop_table("participants")

    op.drop_index("ix_poll_events_poll_id", table_name="poll_events")
    op.drop_table("poll_events")

    op.drop_index("ix_polls_admin_token", table_name="polls")
    op.drop_table("polls")
