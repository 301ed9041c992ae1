"""Run an automated raffle for one event from the command line.

Usage: ``python scripts/run_draw.py EVENT_ID [INTERVAL_SECONDS] [--save]``
"""

from __future__ import annotations

import asyncio
import logging
import random
import sys
from typing import Optional

from raffledraw.config import DEFAULT_INTERVAL_SECONDS, RAFFLE_SEED
from raffledraw.db.engine import get_sessionmaker, make_engine
from raffledraw.draw import RaffleDrawError, RunSummary, WinnerRecord
from raffledraw.workflows import SqlWinnerStore, start_draw_session


def _print_winner(record: WinnerRecord) -> None:
    print(f"  {record.prize_name}: {record.attendee_name}")


async def run(event_id: str, interval: float, save: bool) -> int:
    engine = make_engine()
    Session = get_sessionmaker(engine)
    rng: Optional[random.Random] = random.Random(RAFFLE_SEED) if RAFFLE_SEED is not None else None

    with Session.begin() as session:
        try:
            draw, warnings = start_draw_session(session, event_id, rng=rng)
        except (RaffleDrawError, ValueError) as exc:
            print(f"Cannot start the draw: {exc}", file=sys.stderr)
            return 1
        for message in warnings:
            print(f"Warning: {message}")

        finished: asyncio.Future = asyncio.get_running_loop().create_future()
        draw.add_listener(_print_winner)
        draw.add_run_finished_listener(finished.set_result)

        with draw:
            print(f"Drawing {len(draw.prizes)} prizes every {interval:g}s")
            try:
                summary: Optional[RunSummary] = draw.start_automated_run(interval)
            except RaffleDrawError as exc:
                print(f"Cannot start the draw: {exc}", file=sys.stderr)
                return 1
            if summary is None:
                try:
                    summary = await finished
                except asyncio.CancelledError:
                    draw.stop_automated_run()
                    raise

            if summary.failed:
                print(
                    f"Draw failed after {summary.awarded} winners: {summary.error}",
                    file=sys.stderr,
                )
                return 1
            if summary.exhausted:
                print(
                    f"No more eligible attendees: {summary.awarded} prizes awarded, "
                    f"{summary.skipped} unawarded."
                )
            else:
                print(f"Draw completed: {summary.awarded} winners.")

            if save and summary.winners:
                SqlWinnerStore(session).save_winners(summary.winners)
                print("Winners saved.")
    return 0


def main(argv: list[str]) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = [a for a in argv if not a.startswith("--")]
    if not args:
        print(__doc__, file=sys.stderr)
        return 2
    event_id = args[0]
    try:
        interval = float(args[1]) if len(args) > 1 else float(DEFAULT_INTERVAL_SECONDS)
    except ValueError:
        print(f"Interval must be a number of seconds, got {args[1]!r}", file=sys.stderr)
        return 2
    return asyncio.run(run(event_id, interval, save="--save" in argv))


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
