"""Database model for committed raffle winners."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .event import EventAttendee, EventPrize, RaffleEvent
from .utils import generate_prefixed_id
from ..draw.types import WinnerRecord


class RaffleWinner(Base):
    """A committed draw result: one attendee winning one prize of an event.

    Rows are written only when the organizer keeps the results of a run and
    are never updated afterwards; removing a winner is a deletion.
    """

    __tablename__ = "raffle_winners"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    """Primary key, e.g. ``winner-XXXXXXXXXXXX``."""

    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )

    prize_id: Mapped[str] = mapped_column(
        ForeignKey("prizes.id", ondelete="CASCADE"), nullable=False
    )

    attendee_id: Mapped[str] = mapped_column(
        ForeignKey("attendees.id", ondelete="CASCADE"), nullable=False
    )

    prize_name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Prize name as it was when the winner was drawn."""

    attendee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Attendee name as it was when the winner was drawn."""

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Moment the winner was drawn (not when it was saved)."""

    event: Mapped["RaffleEvent"] = relationship(back_populates="winners")
    prize: Mapped["EventPrize"] = relationship()
    attendee: Mapped["EventAttendee"] = relationship()

    __table_args__ = (
        UniqueConstraint("event_id", "attendee_id", name="uq_raffle_winner_attendee"),
        UniqueConstraint("event_id", "prize_id", name="uq_raffle_winner_prize"),
    )

    def __init__(
        self,
        *,
        event_id: str,
        prize_id: str,
        attendee_id: str,
        prize_name: str,
        attendee_name: str,
        timestamp: Optional[datetime] = None,
        id: Optional[str] = None,
    ) -> None:
        self.id = id or generate_prefixed_id("winner")
        self.event_id = event_id
        self.prize_id = prize_id
        self.attendee_id = attendee_id
        self.prize_name = prize_name
        self.attendee_name = attendee_name
        if timestamp is not None:
            self.timestamp = timestamp

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<RaffleWinner(id={self.id}, event_id={self.event_id}, "
            f"prize_id={self.prize_id}, attendee_id={self.attendee_id})>"
        )

    @classmethod
    def from_record(cls, record: WinnerRecord) -> "RaffleWinner":
        return cls(
            event_id=record.event_id,
            prize_id=record.prize_id,
            attendee_id=record.attendee_id,
            prize_name=record.prize_name,
            attendee_name=record.attendee_name,
            timestamp=record.timestamp,
        )

    def to_record(self) -> WinnerRecord:
        """Return the engine-side value object for this row.

        SQLite drops timezone information, so naive timestamps are read back
        as UTC.
        """

        timestamp = self.timestamp
        if timestamp is not None and timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return WinnerRecord(
            event_id=self.event_id,
            prize_id=self.prize_id,
            attendee_id=self.attendee_id,
            prize_name=self.prize_name,
            attendee_name=self.attendee_name,
            timestamp=timestamp,
        )

    @classmethod
    def for_event(cls, session: Session, event_id: str) -> list["RaffleWinner"]:
        """Return the event's winners in the order they were drawn."""

        stmt = (
            select(cls)
            .where(cls.event_id == event_id)
            .order_by(cls.timestamp.asc(), cls.id.asc())
        )
        return list(session.scalars(stmt).all())


__all__ = ["RaffleWinner"]
