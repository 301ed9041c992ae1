from __future__ import annotations

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from raffledraw.db.engine import make_engine
from raffledraw.models import EventAttendee, EventPrize, RaffleEvent, RaffleWinner

PROJECT_ROOT = Path(__file__).resolve().parents[1]
RAFFLE_TABLES = {"events", "attendees", "prizes", "raffle_winners"}


def alembic_config() -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return cfg


def upgrade_db(target_revision: str = "head") -> None:
    """Apply the raffle migrations up to ``target_revision``."""
    command.upgrade(alembic_config(), target_revision)


def report(engine) -> int:
    """Print the raffle tables with their row counts; non-zero if any is missing."""
    present = set(inspect(engine).get_table_names())
    missing = sorted(RAFFLE_TABLES - present)
    if missing:
        print(f"Missing raffle tables: {', '.join(missing)}", file=sys.stderr)
        return 1

    with Session(engine) as session:
        for model in (RaffleEvent, EventAttendee, EventPrize, RaffleWinner):
            count = session.scalar(select(func.count()).select_from(model))
            print(f"{model.__tablename__:<16} {count} rows")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Migrate the configured database (default: head) and summarize its contents."""
    args = sys.argv[1:] if argv is None else argv
    upgrade_db(args[0] if args else "head")
    return report(make_engine())


if __name__ == "__main__":
    raise SystemExit(main())
