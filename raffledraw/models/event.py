"""Database models for events, their attendees and their prizes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .utils import generate_prefixed_id
from ..draw.types import Attendee, Prize

if TYPE_CHECKING:
    from .winner import RaffleWinner


class RaffleEvent(Base):
    """An event whose checked-in attendees take part in the raffle."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    """Primary key, e.g. ``event-XXXXXXXXXXXX``."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Display name of the event."""

    starts_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Scheduled start of the event, if known."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    attendees: Mapped[list["EventAttendee"]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )
    prizes: Mapped[list["EventPrize"]] = relationship(
        back_populates="event",
        cascade="all, delete-orphan",
        order_by=lambda: [EventPrize.position, EventPrize.created_at, EventPrize.id],
    )
    winners: Mapped[list["RaffleWinner"]] = relationship(
        back_populates="event", cascade="all, delete-orphan"
    )

    def __init__(
        self,
        *,
        name: str,
        id: Optional[str] = None,
        starts_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.id = id or generate_prefixed_id("event")
        self.name = name
        self.starts_at = starts_at
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<RaffleEvent(id={self.id}, name='{self.name}')>"

    def checked_in_attendees(self, session: Session) -> list["EventAttendee"]:
        """Return the event's checked-in attendees ordered by check-in time."""

        stmt = (
            select(EventAttendee)
            .where(
                EventAttendee.event_id == self.id,
                EventAttendee.checked_in.is_(True),
            )
            .order_by(EventAttendee.checked_in_at.asc(), EventAttendee.id.asc())
        )
        return list(session.scalars(stmt).all())


class EventAttendee(Base):
    """An attendee registered for an event."""

    __tablename__ = "attendees"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    """Primary key, e.g. ``attendee-XXXXXXXXXXXX``."""

    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    ticket_code: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, unique=True
    )
    """Code printed on the attendee's ticket and scanned at check-in."""

    checked_in: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    """Only checked-in attendees are eligible to win."""

    checked_in_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    event: Mapped["RaffleEvent"] = relationship(back_populates="attendees")

    __table_args__ = (Index("ix_attendees_event_checked_in", "event_id", "checked_in"),)

    def __init__(
        self,
        *,
        full_name: str,
        event: Optional["RaffleEvent"] = None,
        event_id: Optional[str] = None,
        id: Optional[str] = None,
        email: Optional[str] = None,
        ticket_code: Optional[str] = None,
        checked_in: bool = False,
        checked_in_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.id = id or generate_prefixed_id("attendee")
        if event is not None:
            self.event = event
        if event_id is not None:
            self.event_id = event_id
        self.full_name = full_name
        self.email = email
        self.ticket_code = ticket_code
        self.checked_in = checked_in
        self.checked_in_at = checked_in_at
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<EventAttendee(id={self.id}, event_id={self.event_id}, "
            f"checked_in={self.checked_in})>"
        )

    def check_in(self, at: Optional[datetime] = None) -> None:
        """Mark the attendee as present. Checking in twice keeps the first time."""
        if self.checked_in:
            return
        self.checked_in = True
        self.checked_in_at = at or datetime.now(timezone.utc)

    def to_candidate(self) -> Attendee:
        """Return the immutable snapshot consumed by the draw engine."""
        return Attendee(
            id=self.id, full_name=self.full_name, checked_in=bool(self.checked_in)
        )


class EventPrize(Base):
    """A prize to be raffled at an event. ``position`` sets the draw order."""

    __tablename__ = "prizes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    """Primary key, e.g. ``prize-XXXXXXXXXXXX``."""

    event_id: Mapped[str] = mapped_column(
        ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    """Draw order within the event; ties fall back to creation time."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    event: Mapped["RaffleEvent"] = relationship(back_populates="prizes")

    def __init__(
        self,
        *,
        name: str,
        event: Optional["RaffleEvent"] = None,
        event_id: Optional[str] = None,
        id: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        position: int = 0,
        created_at: Optional[datetime] = None,
    ) -> None:
        if not name or not name.strip():
            raise ValueError("Prize name is required")
        self.id = id or generate_prefixed_id("prize")
        if event is not None:
            self.event = event
        if event_id is not None:
            self.event_id = event_id
        self.name = name.strip()
        self.description = description
        self.image_url = image_url
        self.position = position
        if created_at is not None:
            self.created_at = created_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<EventPrize(id={self.id}, event_id={self.event_id}, "
            f"name='{self.name}', position={self.position})>"
        )

    def to_prize(self) -> Prize:
        """Return the immutable snapshot consumed by the draw engine."""
        return Prize(
            id=self.id,
            name=self.name,
            description=self.description,
            image_url=self.image_url,
        )


__all__ = ["EventAttendee", "EventPrize", "RaffleEvent"]
