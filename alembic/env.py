"""Alembic environment for the raffle schema.

The database URL comes from, in order: ``alembic -x db_url=...``, the
``DB_URL`` environment variable (``.env`` is honoured), then the default
development SQLite file. Relative SQLite paths are anchored at the repo root.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from raffledraw.config import DEFAULT_SQLITE_URL  # noqa: E402
from raffledraw.db.engine import make_engine  # noqa: E402
from raffledraw.db.utils import resolve_sqlite_url  # noqa: E402
from raffledraw.models import Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def database_url() -> str:
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    if override:
        return resolve_sqlite_url(override, ROOT_DIR)
    return DEFAULT_SQLITE_URL


def _configure_kwargs(dialect_name: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "compare_server_default": True,
        # SQLite cannot ALTER constraints in place.
        "render_as_batch": dialect_name == "sqlite",
    }


def run_migrations_offline(url: str) -> None:
    """Emit the raffle migrations as SQL without connecting."""
    dialect_name = url.split(":", 1)[0].split("+", 1)[0]
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(dialect_name),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online(url: str) -> None:
    """Apply the raffle migrations over a live connection."""
    engine = make_engine(database_url=url)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection, **_configure_kwargs(connection.dialect.name)
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


url = database_url()
# ConfigParser interpolation treats '%' specially.
config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))

if context.is_offline_mode():
    run_migrations_offline(url)
else:
    run_migrations_online(url)
