import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol, Sequence
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from .draw.engine import DrawEngine
from .draw.errors import DuplicateWinnerError, EmptyPoolError, EmptyPrizeQueueError
from .draw.scheduler import Scheduler
from .draw.selection import RandomSource, eligible_candidates
from .draw.types import Attendee, Prize, WinnerRecord
from .models import EventAttendee, EventPrize, RaffleEvent, RaffleWinner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrawInputs:
    """Snapshot of everything the draw engine needs for one event.

    Attributes
    ----------
    event_id : str
        Event the snapshot was taken for.
    prizes : tuple[Prize, ...]
        Prizes in draw order.
    attendees : tuple[Attendee, ...]
        All attendees of the event, checked in or not.
    persisted_winners : tuple[WinnerRecord, ...]
        Winners already committed for the event.
    """

    event_id: str
    prizes: tuple[Prize, ...]
    attendees: tuple[Attendee, ...]
    persisted_winners: tuple[WinnerRecord, ...]


@dataclass(frozen=True)
class DrawReadiness:
    """Counts shown to the organizer before a draw starts."""

    prize_count: int
    checked_in_count: int
    eligible_count: int
    warnings: list[str] = field(default_factory=list)


class WinnerStore(Protocol):
    """Anything that can commit a run's winners."""

    def save_winners(self, records: Sequence[WinnerRecord]) -> Sequence[object]: ...


def _require_event(session: Session, event_id: str) -> RaffleEvent:
    event = session.get(RaffleEvent, event_id)
    if event is None:
        raise ValueError(f"Event '{event_id}' does not exist")
    return event


def load_draw_inputs(session: Session, event_id: str) -> DrawInputs:
    """Read the prizes, attendees and committed winners of ``event_id``.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    event_id : str
        Event to load.

    Returns
    -------
    DrawInputs
        Immutable snapshot; later changes to the database do not affect it.

    Raises
    ------
    ValueError
        If the event does not exist.
    """

    _require_event(session, event_id)

    prizes = session.scalars(
        select(EventPrize)
        .where(EventPrize.event_id == event_id)
        .order_by(
            EventPrize.position.asc(),
            EventPrize.created_at.asc(),
            EventPrize.id.asc(),
        )
    ).all()
    attendees = session.scalars(
        select(EventAttendee)
        .where(EventAttendee.event_id == event_id)
        .order_by(EventAttendee.created_at.asc(), EventAttendee.id.asc())
    ).all()
    winners = RaffleWinner.for_event(session, event_id)

    return DrawInputs(
        event_id=event_id,
        prizes=tuple(p.to_prize() for p in prizes),
        attendees=tuple(a.to_candidate() for a in attendees),
        persisted_winners=tuple(w.to_record() for w in winners),
    )


def check_draw_readiness(session: Session, event_id: str) -> DrawReadiness:
    """Check whether ``event_id`` can be raffled and collect warnings.

    Raises
    ------
    EmptyPrizeQueueError
        If the event has no prizes.
    EmptyPoolError
        If nobody is checked in.
    """

    inputs = load_draw_inputs(session, event_id)
    checked_in = [a for a in inputs.attendees if a.checked_in]
    if not inputs.prizes:
        raise EmptyPrizeQueueError("Add at least one prize before starting the draw")
    if not checked_in:
        raise EmptyPoolError("No attendees are checked in for the draw")

    excluded = {w.attendee_id for w in inputs.persisted_winners}
    eligible = eligible_candidates(inputs.attendees, excluded)

    warnings: list[str] = []
    if not eligible:
        warnings.append("Every checked-in attendee has already won a prize")
    elif len(eligible) < len(inputs.prizes):
        warnings.append(
            f"There are {len(inputs.prizes)} prizes but only {len(eligible)} eligible "
            "attendees; some prizes may go unawarded"
        )
    return DrawReadiness(
        prize_count=len(inputs.prizes),
        checked_in_count=len(checked_in),
        eligible_count=len(eligible),
        warnings=warnings,
    )


def start_draw_session(
    session: Session,
    event_id: str,
    *,
    rng: Optional[RandomSource] = None,
    scheduler: Optional[Scheduler] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> tuple[DrawEngine, list[str]]:
    """Create a :class:`DrawEngine` seeded from the database for ``event_id``.

    Returns the engine together with the warnings produced by
    :meth:`DrawEngine.initialize`.
    """

    inputs = load_draw_inputs(session, event_id)
    engine = DrawEngine(event_id, rng=rng, scheduler=scheduler, clock=clock)
    warnings = engine.initialize(
        inputs.prizes, inputs.attendees, inputs.persisted_winners
    )
    return engine, warnings


class SqlWinnerStore:
    """Winner store writing :class:`RaffleWinner` rows through a SQLAlchemy session.

    The store flushes but does not commit; transaction boundaries stay with
    the caller, as everywhere else in this package.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def save_winners(self, records: Sequence[WinnerRecord]) -> list[RaffleWinner]:
        """Persist ``records`` and return the new rows.

        Raises
        ------
        DuplicateWinnerError
            If an attendee or a prize appears twice in ``records`` or already
            has a committed winner for the same event. Nothing is written in
            that case.
        """

        records = list(records)
        if not records:
            return []

        seen_attendees: set[tuple[str, str]] = set()
        seen_prizes: set[tuple[str, str]] = set()
        for record in records:
            attendee_key = (record.event_id, record.attendee_id)
            prize_key = (record.event_id, record.prize_id)
            if attendee_key in seen_attendees:
                raise DuplicateWinnerError(
                    f"Attendee '{record.attendee_id}' appears more than once in the winners to save"
                )
            if prize_key in seen_prizes:
                raise DuplicateWinnerError(
                    f"Prize '{record.prize_id}' appears more than once in the winners to save"
                )
            seen_attendees.add(attendee_key)
            seen_prizes.add(prize_key)

        for event_id in {r.event_id for r in records}:
            existing = RaffleWinner.for_event(self._session, event_id)
            existing_attendees = {w.attendee_id for w in existing}
            existing_prizes = {w.prize_id for w in existing}
            for record in records:
                if record.event_id != event_id:
                    continue
                if record.attendee_id in existing_attendees:
                    raise DuplicateWinnerError(
                        f"Attendee '{record.attendee_id}' already won a prize in event '{event_id}'"
                    )
                if record.prize_id in existing_prizes:
                    raise DuplicateWinnerError(
                        f"Prize '{record.prize_id}' already has a winner in event '{event_id}'"
                    )

        rows = [RaffleWinner.from_record(record) for record in records]
        self._session.add_all(rows)
        self._session.flush()
        logger.info(f"Saved {len(rows)} raffle winners")
        return rows


def save_winners(session: Session, records: Iterable[WinnerRecord]) -> list[RaffleWinner]:
    """Persist the winners of a run. See :meth:`SqlWinnerStore.save_winners`."""

    return SqlWinnerStore(session).save_winners(list(records))


def list_event_winners(session: Session, event_id: str) -> list[WinnerRecord]:
    """Return the committed winners of ``event_id`` in draw order."""

    return [w.to_record() for w in RaffleWinner.for_event(session, event_id)]


def delete_winner(session: Session, winner_id: str) -> bool:
    """Delete a single committed winner.

    The attendee becomes eligible again the next time a draw engine is
    initialized for the event; engines already running are not affected.

    Returns
    -------
    bool
        ``True`` if a row was deleted, ``False`` if ``winner_id`` was unknown.
    """

    winner = session.get(RaffleWinner, winner_id)
    if winner is None:
        return False
    session.delete(winner)
    session.flush()
    logger.info(f"Deleted raffle winner {winner_id} of event {winner.event_id}")
    return True


def delete_all_winners(session: Session, event_id: str) -> int:
    """Delete every committed winner of ``event_id`` and return how many were removed."""

    _require_event(session, event_id)
    result = session.execute(
        delete(RaffleWinner)
        .where(RaffleWinner.event_id == event_id)
        .execution_options(synchronize_session="fetch")
    )
    session.flush()
    count = result.rowcount or 0
    logger.info(f"Deleted {count} raffle winners of event {event_id}")
    return count
