"""Environment-driven settings for the raffle drawing package.

Values are read once at import time from the process environment, after
loading a ``.env`` file from the working directory if one exists.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .db.utils import resolve_sqlite_url

load_dotenv()

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_SQLITE_URL = resolve_sqlite_url(
    os.getenv("DB_URL", "sqlite:///./dev.db"), ROOT_DIR
)


def _int_from_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer, got {raw!r}") from exc


DEFAULT_INTERVAL_SECONDS: int = _int_from_env("RAFFLE_DEFAULT_INTERVAL_SECONDS", 3)
"""Delay between consecutive winner reveals in automated runs."""

RAFFLE_SEED: Optional[int] = _int_from_env("RAFFLE_SEED", None)
"""Optional seed for reproducible draws in scripts; unset means system randomness."""
