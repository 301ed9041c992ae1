from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import sessionmaker
from raffledraw.db.engine import make_engine
from raffledraw.models import (
    Base,
    EventAttendee,
    EventPrize,
    RaffleEvent,
)

DEV_EVENT_ID = "event-dev-launch"


def main() -> None:
    """Seed the development database with sample data."""
    engine = make_engine()

    # Drop and recreate all tables with foreign key checks disabled so SQLite
    # can drop them in any order.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    now = datetime.now(timezone.utc)

    with Session.begin() as session:
        event = RaffleEvent(
            id=DEV_EVENT_ID,
            name="Product Launch Night",
            starts_at=now + timedelta(hours=2),
            created_at=now,
        )
        session.add(event)
        session.flush()

        # Attendees: the first eight arrive, the last two never check in.
        names = [
            "Alice Moreno",
            "Bruno Castillo",
            "Carmen Ruiz",
            "Diego Herrera",
            "Elena Vargas",
            "Felipe Ortega",
            "Gabriela Silva",
            "Hugo Navarro",
            "Irene Delgado",
            "Javier Romero",
        ]
        for idx, full_name in enumerate(names, start=1):
            attendee = EventAttendee(
                event=event,
                full_name=full_name,
                email=f"guest{idx:02d}@example.com",
                ticket_code=f"TCK-{idx:04d}",
                created_at=now,
            )
            if idx <= 8:
                attendee.check_in(now + timedelta(minutes=idx))
            session.add(attendee)

        # Prizes, drawn in position order.
        prizes = [
            ("Smart TV 55\"", "4K television donated by the venue"),
            ("Wireless headphones", "Noise cancelling, over-ear"),
            ("Coffee maker", None),
            ("Gift card", "Redeemable at the event store"),
            ("Branded mug", None),
        ]
        for position, (name, description) in enumerate(prizes):
            session.add(
                EventPrize(
                    event=event,
                    name=name,
                    description=description,
                    position=position,
                    created_at=now,
                )
            )
        session.flush()

    print(f"Development database seeded (event id: {DEV_EVENT_ID}).")


if __name__ == "__main__":
    main()
