"""Utility helpers for the models package."""

from __future__ import annotations

import secrets
import string

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_prefixed_id(prefix: str, length: int = 12) -> str:
    """Return an identifier such as ``winner-3fZ9k0QaLmP2`` built from base62 characters.

    The random suffix carries ~71 bits of entropy at the default length, so
    collisions are left to the primary key constraint rather than checked.
    """

    if not prefix:
        raise ValueError("prefix must not be empty")
    if length <= 0:
        raise ValueError("length must be positive")
    suffix = "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"[:64]
