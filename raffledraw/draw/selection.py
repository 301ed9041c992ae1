"""Candidate filtering and the uniform selection policy."""

from __future__ import annotations

from typing import AbstractSet, Iterable, Protocol, Sequence, TypeVar

from .types import Attendee

T = TypeVar("T")


class RandomSource(Protocol):
    """Minimal interface the selection step needs from a random generator.

    Both :class:`random.Random` and :class:`secrets.SystemRandom` satisfy it.
    """

    def randrange(self, stop: int) -> int: ...


def eligible_candidates(
    pool: Iterable[Attendee], excluded_ids: AbstractSet[str]
) -> list[Attendee]:
    """Return checked-in attendees not in ``excluded_ids``, preserving pool order.

    Duplicate ids in ``pool`` are collapsed to their first occurrence so that
    an attendee listed twice does not get twice the chance of winning.
    """

    available: list[Attendee] = []
    seen: set[str] = set()
    for attendee in pool:
        if not attendee.checked_in:
            continue
        if attendee.id in excluded_ids or attendee.id in seen:
            continue
        seen.add(attendee.id)
        available.append(attendee)
    return available


def select_uniform(candidates: Sequence[T], rng: RandomSource) -> T:
    """Pick one element of ``candidates`` with equal probability.

    Parameters
    ----------
    candidates : Sequence[T]
        Non-empty sequence to choose from.
    rng : RandomSource
        Source of randomness. ``randrange`` is used rather than scaling a
        float so that every index is exactly equally likely.

    Returns
    -------
    T
        The selected element.

    Raises
    ------
    ValueError
        If ``candidates`` is empty.
    """

    if not candidates:
        raise ValueError("cannot select from an empty candidate list")
    return candidates[rng.randrange(len(candidates))]


__all__ = ["RandomSource", "eligible_candidates", "select_uniform"]
