"""Compare the raffle models against a live database.

Exit codes: 0 when the schema matches and the database is at the latest
migration, 1 when differences were found, 2 when the check itself failed.
"""

from __future__ import annotations

import sys
from pathlib import Path

from alembic.autogenerate import api as ag_api
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from raffledraw.db.engine import make_engine
from raffledraw.models import Base

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def _describe(ops, depth: int = 0) -> list[str]:
    lines: list[str] = []
    for op in ops:
        lines.append(f"{'  ' * depth}- {op}")
        lines.extend(_describe(getattr(op, "ops", None) or [], depth + 1))
    return lines


def head_revision() -> str | None:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return ScriptDirectory.from_config(cfg).get_current_head()


def find_drift(connection) -> tuple[str | None, list[str]]:
    """Return the database's current revision and the model/table differences."""
    context = MigrationContext.configure(
        connection=connection,
        opts={
            "compare_type": True,
            "compare_server_default": True,
            "render_as_batch": connection.dialect.name == "sqlite",
        },
    )
    upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    differences = [] if upgrade_ops is None else _describe(upgrade_ops.ops or [])
    return context.get_current_revision(), differences


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    engine = make_engine(args[0] if args else None)
    shown_url = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            current, differences = find_drift(connection)
        head = head_revision()
    except Exception as exc:
        print(f"Schema drift check: ERROR for {shown_url}: {exc}", file=sys.stderr)
        return 2

    status = 0
    if current != head:
        print(f"Database {shown_url} is at revision {current}, latest is {head}.")
        status = 1
    if differences:
        print(f"Raffle models differ from {shown_url}:")
        print("\n".join(differences))
        status = 1
    if status == 0:
        print(f"Schema drift check: OK for {shown_url} (revision {head}).")
    return status


if __name__ == "__main__":
    raise SystemExit(main())
