import asyncio
import json
import logging

import aio_pika
from pydantic import ValidationError
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import async_sessionmaker

from .errors import MarketplaceError
from .event_log import EventLog
from .models import Booking
from .notifications import Notifier
from .rabbitmq import connect, declare_exchange
from .schemas import CheckoutCompleted
from .workflow import AssignmentWorkflow

logger = logging.getLogger(__name__)

QUEUE_NAME = "booking_service_checkout_events"
CHECKOUT_COMPLETED = "booking.checkout_completed"
ROUTING_KEYS = [CHECKOUT_COMPLETED]

IDEMPOTENCY_TTL_SECONDS = 60 * 60  # 1 hour
RETRY_SECONDS = 5


class CheckoutConsumer:
    """Turns booking.checkout_completed events into bookings."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        event_log: EventLog,
        notifier: Notifier,
        redis_client=None,
    ):
        self.session_factory = session_factory
        self.event_log = event_log
        self.notifier = notifier
        self.redis = redis_client

    async def _already_processed(self, event_id: str) -> bool:
        if self.redis is None:
            return False
        key = f"processed_event:{event_id}"
        try:
            if await self.redis.get(key):
                return True
            await self.redis.set(key, "1", ex=IDEMPOTENCY_TTL_SECONDS)
        except RedisError as e:
            logger.warning(f"Idempotency check unavailable for {event_id}: {e}")
        return False

    async def process(self, payload: dict) -> Booking | None:
        event_id = payload.get("event_id")
        event_type = payload.get("event_type")
        data = payload.get("data")

        if event_type != CHECKOUT_COMPLETED:
            return None
        if not isinstance(data, dict) or not data.get("customer_id"):
            logger.warning(f"Dropping {event_type} {event_id}: customer_id missing")
            return None

        if event_id and await self._already_processed(event_id):
            logger.info(f"Skipping already processed event {event_id}")
            return None

        try:
            checkout = CheckoutCompleted.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Dropping {event_type} {event_id}: {e.error_count()} invalid fields")
            return None

        async with self.session_factory() as db:
            workflow = AssignmentWorkflow(db, self.event_log, self.notifier)
            try:
                booking = await workflow.create_from_checkout(checkout)
            except MarketplaceError as e:
                logger.warning(f"Checkout event {event_id} rejected: {e.message}")
                return None

        logger.info(f"Checkout event {event_id} -> booking {booking.id} ({booking.status})")
        return booking

    async def handle_message(self, message: aio_pika.abc.AbstractIncomingMessage):
        async with message.process(requeue=False):
            try:
                payload = json.loads(message.body.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.warning("Dropping message with undecodable body")
                return

            if not isinstance(payload, dict):
                return

            await self.process(payload)

    async def _connect_and_consume(self):
        connection = await connect()
        if connection is None:
            raise RuntimeError("RABBIT_URL not set; cannot start consumer")

        channel = await connection.channel()
        await channel.set_qos(prefetch_count=50)
        exchange = await declare_exchange(channel)

        queue = await channel.declare_queue(QUEUE_NAME, durable=True)
        for rk in ROUTING_KEYS:
            await queue.bind(exchange, routing_key=rk)

        await queue.consume(self.handle_message)
        logger.info("Checkout event consumer started")
        return connection

    async def start_with_retry(self, stop_event: asyncio.Event):
        while not stop_event.is_set():
            try:
                return await self._connect_and_consume()
            except Exception as e:
                logger.warning(f"Consumer connect failed, retrying in {RETRY_SECONDS}s: {e}")
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=RETRY_SECONDS)
                except asyncio.TimeoutError:
                    continue

        return None
