import logging
from datetime import datetime

import aio_pika

from .config import EXCHANGE_NAME, RABBIT_URL, SERVICE_NAME
from .events import routing_key_for, to_json

logger = logging.getLogger(__name__)


async def connect() -> aio_pika.abc.AbstractRobustConnection | None:
    if not RABBIT_URL:
        return None
    return await aio_pika.connect_robust(RABBIT_URL)


async def declare_exchange(channel: aio_pika.abc.AbstractChannel) -> aio_pika.abc.AbstractExchange:
    return await channel.declare_exchange(EXCHANGE_NAME, aio_pika.ExchangeType.TOPIC, durable=True)


def event_message(event: dict) -> aio_pika.Message:
    """Persistent JSON message for a booking event envelope, tagged with its id and type."""
    return aio_pika.Message(
        body=to_json(event).encode("utf-8"),
        content_type="application/json",
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        message_id=event["event_id"],
        type=event["event_type"],
        app_id=SERVICE_NAME,
        timestamp=datetime.fromisoformat(event["occurred_at"]),
    )


class RabbitPublisher:
    """
    Publishes booking events on the domain_events exchange. Disabled when
    RABBIT_URL is unset; a broker outage costs the event, never the caller's
    transition.
    """

    def __init__(self, url: str | None = RABBIT_URL):
        self.url = url
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def _ensure_exchange(self) -> aio_pika.abc.AbstractExchange:
        if self._exchange is not None and self._connection and not self._connection.is_closed:
            return self._exchange

        self._connection = await aio_pika.connect_robust(self.url)
        channel = await self._connection.channel()
        self._exchange = await declare_exchange(channel)
        logger.info(f"Publishing booking events to exchange {EXCHANGE_NAME}")
        return self._exchange

    async def publish_event(self, event: dict) -> bool:
        if not self.enabled:
            return False

        routing_key = routing_key_for(event["event_type"])
        booking_id = (event.get("data") or {}).get("bookingId")
        try:
            exchange = await self._ensure_exchange()
            await exchange.publish(event_message(event), routing_key=routing_key)
        except (aio_pika.exceptions.AMQPError, OSError) as e:
            logger.warning(f"Dropped {routing_key} event {event['event_id']} for booking {booking_id}: {e}")
            self._exchange = None
            return False
        return True

    async def close(self):
        try:
            if self._connection and not self._connection.is_closed:
                await self._connection.close()
        finally:
            self._connection = None
            self._exchange = None


publisher = RabbitPublisher()
