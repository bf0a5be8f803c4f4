import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .events import build_event
from .models import BookingEvent, new_id, utcnow
from .rabbitmq import RabbitPublisher

logger = logging.getLogger(__name__)


class EventLog:
    """
    Append-only audit trail of workflow transitions.

    append() runs after the state change has been committed, in its own
    session, so a failing audit write never undoes the transition. Each
    stored event is also published on the domain_events exchange.
    """

    def __init__(self, session_factory: async_sessionmaker, publisher: RabbitPublisher):
        self.session_factory = session_factory
        self.publisher = publisher

    async def append(
        self,
        booking_id: str,
        event_type: str,
        actor_id: str | None = None,
        payload: dict | None = None,
    ) -> BookingEvent | None:
        row = BookingEvent(
            id=new_id(),
            booking_id=booking_id,
            event_type=str(event_type),
            actor_id=actor_id,
            payload=payload or {},
            created_at=utcnow(),
        )

        try:
            async with self.session_factory() as db:
                db.add(row)
                await db.commit()
        except SQLAlchemyError:
            logger.exception(f"Failed to append {event_type} for booking {booking_id}")
            return None

        event = build_event(
            row.event_type,
            {
                "bookingId": booking_id,
                "actorId": actor_id,
                "payload": row.payload,
            },
            event_id=row.id,
            occurred_at=row.created_at,
        )
        await self.publisher.publish_event(event)
        return row

    async def history(self, db: AsyncSession, booking_id: str) -> list[BookingEvent]:
        res = await db.execute(
            select(BookingEvent)
            .where(BookingEvent.booking_id == booking_id)
            .order_by(BookingEvent.created_at.asc(), BookingEvent.id.asc())
        )
        return list(res.scalars().all())
