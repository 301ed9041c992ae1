"""Value objects shared by the draw engine and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from ..db.utils import dt_iso


class RunState(str, Enum):
    """Lifecycle of a :class:`~raffledraw.draw.engine.DrawEngine` run."""

    IDLE = "idle"
    CONFIGURING = "configuring"
    DRAWING = "drawing"
    AWAITING_ADVANCE = "awaiting_advance"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Prize:
    """A prize in the draw queue.

    Attributes
    ----------
    id : str
        Identifier of the prize in the external store.
    name : str
        Display name captured on the winner record.
    description : Optional[str]
        Free form description shown alongside the prize.
    image_url : Optional[str]
        Reference to an image of the prize, if any.
    """

    id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Attendee:
    """A candidate for selection. Only checked-in attendees are eligible."""

    id: str
    full_name: str
    checked_in: bool = False


@dataclass(frozen=True)
class WinnerRecord:
    """Immutable record of one attendee winning one prize.

    Names are denormalized at draw time so later edits to the prize or the
    attendee do not rewrite history.
    """

    event_id: str
    prize_id: str
    attendee_id: str
    prize_name: str
    attendee_name: str
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "prize_id": self.prize_id,
            "attendee_id": self.attendee_id,
            "prize_name": self.prize_name,
            "attendee_name": self.attendee_name,
            "timestamp": dt_iso(self.timestamp),
        }


@dataclass(frozen=True)
class RunSummary:
    """Outcome of an automated run, reported when the run stops.

    Attributes
    ----------
    outcome : str
        ``"completed"`` when every prize has a winner, ``"exhausted"`` when the
        eligible pool ran dry, ``"cancelled"`` when the run was stopped,
        ``"failed"`` when a draw raised an unexpected error.
    awarded : int
        Number of prizes that received a winner in this run.
    skipped : int
        Number of prizes left without a winner.
    winners : tuple[WinnerRecord, ...]
        Records produced by the run, in draw order.
    error : Optional[BaseException]
        The exception that ended a ``"failed"`` run, otherwise ``None``.
    """

    outcome: str
    awarded: int
    skipped: int
    winners: tuple[WinnerRecord, ...]
    error: Optional[BaseException] = None

    @property
    def exhausted(self) -> bool:
        return self.outcome == "exhausted"

    @property
    def failed(self) -> bool:
        return self.outcome == "failed"


__all__ = [
    "Attendee",
    "Prize",
    "RunState",
    "RunSummary",
    "WinnerRecord",
]
