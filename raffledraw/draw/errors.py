"""Errors raised by the raffle draw engine and winner store."""

from __future__ import annotations

from typing import Optional


class RaffleDrawError(Exception):
    """Base class for all raffle draw failures."""


class EmptyPrizeQueueError(RaffleDrawError):
    """Raised when a draw is configured without any prizes."""


class EmptyPoolError(RaffleDrawError):
    """Raised when no attendee is checked in at all."""


class NoEligibleCandidatesError(RaffleDrawError):
    """Raised when checked-in attendees exist but every one has already won.

    ``awarded`` and ``skipped`` describe the current run at the moment the pool
    ran dry so callers can tell the user how many prizes went unawarded.
    """

    def __init__(self, message: str, *, awarded: int = 0, skipped: int = 0) -> None:
        super().__init__(message)
        self.awarded = awarded
        self.skipped = skipped


class InvalidIntervalError(RaffleDrawError, ValueError):
    """Raised when an automated run is started with an interval below one second."""


class InvalidStateTransitionError(RaffleDrawError):
    """Raised when an operation is not allowed in the engine's current state."""

    def __init__(self, action: str, state: object, detail: Optional[str] = None) -> None:
        message = f"Cannot {action} while the draw is {getattr(state, 'value', state)}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.action = action
        self.state = state


class DuplicateWinnerError(RaffleDrawError):
    """Raised by a winner store asked to record a second win for an attendee or prize."""


__all__ = [
    "DuplicateWinnerError",
    "EmptyPoolError",
    "EmptyPrizeQueueError",
    "InvalidIntervalError",
    "InvalidStateTransitionError",
    "NoEligibleCandidatesError",
    "RaffleDrawError",
]
