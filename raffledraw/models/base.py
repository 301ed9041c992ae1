from sqlalchemy.orm import DeclarativeBase

from ..db.metadata import metadata_obj


class Base(DeclarativeBase):
    """Declarative base for the raffle tables; shares the naming-convention metadata."""

    metadata = metadata_obj
