"""State machine that draws raffle winners for an ordered queue of prizes."""

from __future__ import annotations

import logging
import math
import secrets
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .errors import (
    EmptyPoolError,
    EmptyPrizeQueueError,
    InvalidIntervalError,
    InvalidStateTransitionError,
    NoEligibleCandidatesError,
)
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle
from .selection import RandomSource, eligible_candidates, select_uniform
from .types import Attendee, Prize, RunState, RunSummary, WinnerRecord

logger = logging.getLogger(__name__)

WinnerListener = Callable[[WinnerRecord], None]
RunFinishedListener = Callable[[RunSummary], None]

_DRAWABLE_STATES = (RunState.IDLE, RunState.AWAITING_ADVANCE)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DrawEngine:
    """Draw winners for an event without letting any attendee win twice.

    A fresh engine is created for every drawing session. It is seeded with the
    winners already persisted for the event, then driven either one prize at a
    time with :meth:`draw_one` or unattended with :meth:`start_automated_run`.
    The engine never persists anything itself; callers read
    :attr:`accumulated_winners` and hand them to a winner store.

    The engine is not thread-safe. All calls, including the scheduler's timer
    callbacks, are expected on one execution context (typically an asyncio
    event loop).
    """

    def __init__(
        self,
        event_id: str,
        *,
        rng: Optional[RandomSource] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Create an engine for ``event_id``.

        Parameters
        ----------
        event_id : str
            Event the winner records belong to.
        rng : Optional[RandomSource], default: None
            Random source used by the selection step. Defaults to
            :class:`secrets.SystemRandom`; pass a seeded :class:`random.Random`
            for reproducible draws.
        scheduler : Optional[Scheduler], default: None
            Timer used between automated draws. Defaults to an
            :class:`AsyncioScheduler` on the running loop.
        clock : Optional[Callable[[], datetime]], default: None
            Source of winner timestamps. Defaults to the current UTC time.
        """

        self.event_id = event_id
        self._rng: RandomSource = rng or secrets.SystemRandom()
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        self._clock = clock or _utcnow

        self._state = RunState.CONFIGURING
        self._prizes: tuple[Prize, ...] = ()
        self._pool: tuple[Attendee, ...] = ()
        self._seed_ids: frozenset[str] = frozenset()
        self._excluded: set[str] = set()
        self._cursor = 0
        self._winners: list[WinnerRecord] = []

        self._timer: Optional[TimerHandle] = None
        self._auto_running = False
        self._interval: Optional[float] = None
        # Bumped whenever a run is stopped so stale timer callbacks do nothing.
        self._generation = 0

        self._winner_listeners: list[WinnerListener] = []
        self._finish_listeners: list[RunFinishedListener] = []

    # -------- read-only views --------
    @property
    def state(self) -> RunState:
        return self._state

    @property
    def cursor(self) -> int:
        """Index of the next prize to draw."""
        return self._cursor

    @property
    def prizes(self) -> tuple[Prize, ...]:
        return self._prizes

    @property
    def current_prize(self) -> Optional[Prize]:
        if self._cursor < len(self._prizes):
            return self._prizes[self._cursor]
        return None

    @property
    def remaining_prizes(self) -> int:
        return len(self._prizes) - self._cursor

    @property
    def accumulated_winners(self) -> tuple[WinnerRecord, ...]:
        """Winners drawn in the current run, in draw order."""
        return tuple(self._winners)

    @property
    def excluded_ids(self) -> frozenset[str]:
        return frozenset(self._excluded)

    @property
    def is_auto_running(self) -> bool:
        return self._auto_running

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    def available_candidates(self) -> list[Attendee]:
        """Return the attendees that could win the next draw."""
        return eligible_candidates(self._pool, self._excluded)

    # -------- listeners --------
    def add_listener(self, callback: WinnerListener) -> None:
        """Call ``callback`` with every :class:`WinnerRecord` as it is drawn."""
        self._winner_listeners.append(callback)

    def remove_listener(self, callback: WinnerListener) -> None:
        self._winner_listeners.remove(callback)

    def add_run_finished_listener(self, callback: RunFinishedListener) -> None:
        """Call ``callback`` with a :class:`RunSummary` when an automated run stops."""
        self._finish_listeners.append(callback)

    def remove_run_finished_listener(self, callback: RunFinishedListener) -> None:
        self._finish_listeners.remove(callback)

    # -------- lifecycle --------
    def initialize(
        self,
        prizes: Iterable[Prize],
        eligible_pool: Iterable[Attendee],
        persisted_winners: Iterable[WinnerRecord],
    ) -> list[str]:
        """Seed the engine with a prize queue, attendee snapshot and prior winners.

        Parameters
        ----------
        prizes : Iterable[Prize]
            Prizes in draw order.
        eligible_pool : Iterable[Attendee]
            Snapshot of the event's attendees. Only checked-in attendees are
            considered during draws.
        persisted_winners : Iterable[WinnerRecord]
            Winners already stored for the event. Their attendees are excluded
            from every draw made by this engine.

        Returns
        -------
        list[str]
            Human readable warnings the caller may show before drawing, e.g.
            when there are fewer eligible attendees than prizes.

        Raises
        ------
        EmptyPrizeQueueError
            If ``prizes`` is empty.
        EmptyPoolError
            If no attendee in ``eligible_pool`` is checked in.

        Notes
        -----
        Validation happens before any state changes, so a failed call leaves
        the engine exactly as it was. A pool in which every checked-in
        attendee has already won is accepted with a warning; the next draw
        then reports :class:`NoEligibleCandidatesError`.
        """

        prize_queue = tuple(prizes)
        pool = tuple(eligible_pool)
        seed_ids = frozenset(w.attendee_id for w in persisted_winners)

        if not prize_queue:
            raise EmptyPrizeQueueError("At least one prize is required to run a draw")
        if not any(a.checked_in for a in pool):
            raise EmptyPoolError("No checked-in attendees are available for the draw")

        self._cancel_timer()
        self._auto_running = False
        self._generation += 1

        self._prizes = prize_queue
        self._pool = pool
        self._seed_ids = seed_ids
        self._excluded = set(seed_ids)
        self._cursor = 0
        self._winners = []
        self._state = RunState.IDLE

        warnings: list[str] = []
        available = len(self.available_candidates())
        if available == 0:
            warnings.append(
                "Every checked-in attendee has already won a prize for this event"
            )
        elif available < len(prize_queue):
            warnings.append(
                f"There are {len(prize_queue)} prizes but only {available} eligible "
                "attendees; some prizes may go unawarded"
            )
        for message in warnings:
            logger.warning(f"Event {self.event_id}: {message}")

        logger.info(
            f"Initialized draw for event {self.event_id}: {len(prize_queue)} prizes, "
            f"{available} eligible attendees, {len(seed_ids)} previously excluded"
        )
        return warnings

    def refresh_pool(self, eligible_pool: Iterable[Attendee]) -> None:
        """Replace the attendee snapshot, e.g. after new check-ins.

        Winners stay excluded no matter what the new snapshot contains.

        Raises
        ------
        EmptyPoolError
            If nobody in the new snapshot is checked in. The previous
            snapshot is kept.
        InvalidStateTransitionError
            If called while a draw is in progress.
        """

        if self._state is RunState.DRAWING:
            raise InvalidStateTransitionError("refresh the attendee pool", self._state)
        pool = tuple(eligible_pool)
        if not any(a.checked_in for a in pool):
            raise EmptyPoolError("No checked-in attendees are available for the draw")
        self._pool = pool

    def reset(self) -> None:
        """Discard the current run's draws and return to ``IDLE``.

        The exclusion set is rebuilt strictly from the winners passed to the
        last :meth:`initialize` call. Persisted records are never touched.
        """

        self._cancel_timer()
        self._auto_running = False
        self._generation += 1
        self._cursor = 0
        self._winners = []
        self._excluded = set(self._seed_ids)
        self._state = RunState.IDLE if self._prizes else RunState.CONFIGURING
        logger.info(f"Reset draw for event {self.event_id}")

    def close(self) -> None:
        """Release the pending timer, if any, and mark the engine cancelled."""

        self._cancel_timer()
        self._auto_running = False
        self._generation += 1
        self._state = RunState.CANCELLED

    def __enter__(self) -> "DrawEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------- drawing --------
    def draw_one(self) -> WinnerRecord:
        """Draw a winner for the current prize.

        Returns
        -------
        WinnerRecord
            The newly created record. It is already part of
            :attr:`accumulated_winners` and its attendee is excluded from
            further draws.

        Raises
        ------
        InvalidStateTransitionError
            If the engine is not ``IDLE`` or ``AWAITING_ADVANCE``, or an
            automated run is in progress.
        NoEligibleCandidatesError
            If every checked-in attendee has already won. The engine moves to
            ``COMPLETED`` and the current prize is not consumed.
        """

        if self._auto_running:
            raise InvalidStateTransitionError(
                "draw manually", self._state, "an automated run is in progress"
            )
        return self._draw()

    def _draw(self) -> WinnerRecord:
        if self._state not in _DRAWABLE_STATES:
            raise InvalidStateTransitionError("draw", self._state)

        previous_state = self._state
        self._state = RunState.DRAWING
        available = eligible_candidates(self._pool, self._excluded)
        if not available:
            self._state = RunState.COMPLETED
            awarded = len(self._winners)
            skipped = len(self._prizes) - self._cursor
            logger.warning(
                f"Event {self.event_id}: no eligible attendees left; "
                f"{awarded} prizes awarded, {skipped} unawarded"
            )
            raise NoEligibleCandidatesError(
                "No eligible attendees remain; every checked-in attendee has already won",
                awarded=awarded,
                skipped=skipped,
            )

        try:
            attendee = select_uniform(available, self._rng)
            timestamp = self._clock()
        except Exception:
            self._state = previous_state
            raise

        prize = self._prizes[self._cursor]
        record = WinnerRecord(
            event_id=self.event_id,
            prize_id=prize.id,
            attendee_id=attendee.id,
            prize_name=prize.name,
            attendee_name=attendee.full_name,
            timestamp=timestamp,
        )
        self._excluded.add(attendee.id)
        self._winners.append(record)
        self._cursor += 1
        if self._cursor == len(self._prizes):
            self._state = RunState.COMPLETED
        else:
            self._state = RunState.AWAITING_ADVANCE

        logger.info(
            f"Event {self.event_id}: prize {self._cursor}/{len(self._prizes)} "
            f"'{prize.name}' won by attendee {attendee.id}"
        )
        for listener in list(self._winner_listeners):
            listener(record)
        return record

    # -------- automation --------
    def start_automated_run(self, interval_seconds: float) -> Optional[RunSummary]:
        """Draw every prize in sequence, waiting ``interval_seconds`` between winners.

        The first draw happens immediately. Each following draw is scheduled
        ``interval_seconds`` after the previous winner was produced. The run
        never persists anything: when it stops, run-finished listeners receive
        a :class:`RunSummary` and the caller decides whether to store
        :attr:`accumulated_winners`.

        Parameters
        ----------
        interval_seconds : float
            Delay between consecutive winners. Must be at least one second.

        Returns
        -------
        Optional[RunSummary]
            The summary if the run already finished during the first draw
            (single prize, or pool exhausted), otherwise ``None``.

        Raises
        ------
        InvalidIntervalError
            If ``interval_seconds`` is not a finite number of at least 1.
        InvalidStateTransitionError
            If the engine is not ``IDLE``.

        Notes
        -----
        If a later, timer-fired draw raises (a winner listener failing, for
        instance) the run ends with a ``"failed"`` summary carrying the
        exception instead of raising into the event loop. An error in the
        first, immediate draw is reported to listeners the same way and then
        re-raised here.
        """

        if (
            isinstance(interval_seconds, bool)
            or not isinstance(interval_seconds, (int, float))
            or not math.isfinite(interval_seconds)
            or interval_seconds < 1
        ):
            raise InvalidIntervalError(
                f"Interval must be a number of seconds >= 1, got {interval_seconds!r}"
            )
        if self._state is not RunState.IDLE:
            raise InvalidStateTransitionError("start an automated run", self._state)

        self._cursor = 0
        self._winners = []
        self._interval = float(interval_seconds)
        self._auto_running = True
        self._generation += 1
        logger.info(
            f"Starting automated draw for event {self.event_id}: "
            f"{len(self._prizes)} prizes every {self._interval:g}s"
        )
        return self._advance_automated_run(self._generation, from_timer=False)

    def _advance_automated_run(
        self, generation: int, from_timer: bool = True
    ) -> Optional[RunSummary]:
        self._timer = None
        if generation != self._generation or not self._auto_running:
            logger.debug(f"Ignoring stale automated draw for event {self.event_id}")
            return None

        try:
            self._draw()
        except NoEligibleCandidatesError:
            return self._finish_automated_run("exhausted")
        except Exception as exc:
            summary = None
            # Skip the summary if a listener already stopped or reset the run.
            if generation == self._generation and self._auto_running:
                summary = self._finish_automated_run("failed", error=exc)
            logger.exception(
                f"Automated draw for event {self.event_id} failed after "
                f"{len(self._winners)} winners"
            )
            # Timer callbacks have no caller; the summary is the only report.
            if from_timer:
                return summary
            raise

        # A listener may have stopped or reset the run during the draw.
        if generation != self._generation or not self._auto_running:
            return None
        if self._state is RunState.COMPLETED:
            return self._finish_automated_run("completed")

        assert self._interval is not None
        self._timer = self._scheduler.call_later(
            self._interval, self._advance_automated_run, generation
        )
        return None

    def _finish_automated_run(
        self, outcome: str, error: Optional[BaseException] = None
    ) -> RunSummary:
        self._cancel_timer()
        self._auto_running = False
        self._generation += 1
        summary = self._summary(outcome, error)
        if error is None:
            logger.info(
                f"Automated draw for event {self.event_id} {outcome}: "
                f"{summary.awarded} awarded, {summary.skipped} skipped"
            )
        for listener in list(self._finish_listeners):
            listener(summary)
        return summary

    def stop_automated_run(self) -> Optional[RunSummary]:
        """Cancel the pending automated draw, keeping every winner drawn so far.

        Safe to call at any time and idempotent: when no automated run is
        active it does nothing and returns ``None``. Otherwise the run ends
        with a ``"cancelled"`` :class:`RunSummary`, which is also passed to
        run-finished listeners.
        """

        self._cancel_timer()
        if not self._auto_running:
            return None

        self._auto_running = False
        self._generation += 1
        if self._state in _DRAWABLE_STATES:
            self._state = RunState.AWAITING_ADVANCE if self._winners else RunState.IDLE

        summary = self._summary("cancelled")
        logger.info(
            f"Automated draw for event {self.event_id} cancelled after "
            f"{summary.awarded} winners"
        )
        for listener in list(self._finish_listeners):
            listener(summary)
        return summary

    def _summary(
        self, outcome: str, error: Optional[BaseException] = None
    ) -> RunSummary:
        awarded = len(self._winners)
        return RunSummary(
            outcome=outcome,
            awarded=awarded,
            skipped=len(self._prizes) - awarded,
            winners=tuple(self._winners),
            error=error,
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug(f"Cancelled pending draw timer for event {self.event_id}")


__all__ = ["DrawEngine", "RunFinishedListener", "WinnerListener"]
