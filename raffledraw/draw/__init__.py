"""Raffle drawing engine: selection policy, scheduling and the run state machine."""

from .engine import DrawEngine
from .errors import (
    DuplicateWinnerError,
    EmptyPoolError,
    EmptyPrizeQueueError,
    InvalidIntervalError,
    InvalidStateTransitionError,
    NoEligibleCandidatesError,
    RaffleDrawError,
)
from .scheduler import AsyncioScheduler, Scheduler
from .selection import eligible_candidates, select_uniform
from .types import Attendee, Prize, RunState, RunSummary, WinnerRecord

__all__ = [
    "AsyncioScheduler",
    "Attendee",
    "DrawEngine",
    "DuplicateWinnerError",
    "EmptyPoolError",
    "EmptyPrizeQueueError",
    "InvalidIntervalError",
    "InvalidStateTransitionError",
    "NoEligibleCandidatesError",
    "Prize",
    "RaffleDrawError",
    "RunState",
    "RunSummary",
    "Scheduler",
    "WinnerRecord",
    "eligible_candidates",
    "select_uniform",
]
