"""create raffle tables

Revision ID: 0001_raffle_tables
Revises:
Create Date: 2025-05-01 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_raffle_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_events")),
    )
    op.create_table(
        "attendees",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("ticket_code", sa.String(length=64), nullable=True),
        sa.Column(
            "checked_in", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.id"],
            name=op.f("fk_attendees_event_id_events"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_attendees")),
        sa.UniqueConstraint("ticket_code", name=op.f("uq_attendees_ticket_code")),
    )
    with op.batch_alter_table("attendees", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_attendees_event_id"), ["event_id"], unique=False
        )
        batch_op.create_index(
            "ix_attendees_event_checked_in", ["event_id", "checked_in"], unique=False
        )

    op.create_table(
        "prizes",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(length=1024), nullable=True),
        sa.Column("position", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.id"],
            name=op.f("fk_prizes_event_id_events"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_prizes")),
    )
    with op.batch_alter_table("prizes", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_prizes_event_id"), ["event_id"], unique=False)

    op.create_table(
        "raffle_winners",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("prize_id", sa.String(length=64), nullable=False),
        sa.Column("attendee_id", sa.String(length=64), nullable=False),
        sa.Column("prize_name", sa.String(length=255), nullable=False),
        sa.Column("attendee_name", sa.String(length=255), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["attendee_id"],
            ["attendees.id"],
            name=op.f("fk_raffle_winners_attendee_id_attendees"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.id"],
            name=op.f("fk_raffle_winners_event_id_events"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["prize_id"],
            ["prizes.id"],
            name=op.f("fk_raffle_winners_prize_id_prizes"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_winners")),
        sa.UniqueConstraint("event_id", "attendee_id", name="uq_raffle_winner_attendee"),
        sa.UniqueConstraint("event_id", "prize_id", name="uq_raffle_winner_prize"),
    )
    with op.batch_alter_table("raffle_winners", schema=None) as batch_op:
        batch_op.create_index(
            batch_op.f("ix_raffle_winners_event_id"), ["event_id"], unique=False
        )


def downgrade() -> None:
    with op.batch_alter_table("raffle_winners", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_raffle_winners_event_id"))
    op.drop_table("raffle_winners")

    with op.batch_alter_table("prizes", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_prizes_event_id"))
    op.drop_table("prizes")

    with op.batch_alter_table("attendees", schema=None) as batch_op:
        batch_op.drop_index("ix_attendees_event_checked_in")
        batch_op.drop_index(batch_op.f("ix_attendees_event_id"))
    op.drop_table("attendees")

    op.drop_table("events")
