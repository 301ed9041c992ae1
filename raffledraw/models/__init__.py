from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .event import EventAttendee, EventPrize, RaffleEvent  # noqa: F401
from .winner import RaffleWinner  # noqa: F401

__all__ = [
    "Base",
    "EventAttendee",
    "EventPrize",
    "RaffleEvent",
    "RaffleWinner",
]
