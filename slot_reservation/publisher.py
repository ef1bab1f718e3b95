import logging
from datetime import datetime

import aio_pika

from .events import to_json

EXCHANGE_NAME = "domain_events"

logger = logging.getLogger(__name__)


def build_message(event: dict, app_id: str | None = None) -> aio_pika.Message:
    """AMQP message for an event envelope; the envelope id doubles as message id."""
    return aio_pika.Message(
        body=to_json(event).encode("utf-8"),
        content_type="application/json",
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        message_id=event["event_id"],
        type=event["event_type"],
        timestamp=datetime.fromisoformat(event["occurred_at"]),
        app_id=app_id,
    )


class EventPublisher:
    """
    Sends reservation events to the domain_events topic exchange, routed by
    event type (reservation.confirmed, reservation.expired, ...).

    Disabled when no broker URL is configured. Events are notifications that
    follow a committed transition, so a broker outage drops them with a
    warning instead of failing the caller.
    """

    def __init__(self, rabbit_url: str | None, app_id: str | None = None):
        self.rabbit_url = rabbit_url
        self.app_id = app_id
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.rabbit_url)

    async def connect(self):
        if not self.enabled or self._exchange is not None:
            return

        connection = await aio_pika.connect_robust(self.rabbit_url)
        try:
            channel = await connection.channel()
            exchange = await channel.declare_exchange(
                EXCHANGE_NAME,
                aio_pika.ExchangeType.TOPIC,
                durable=True,
            )
        except Exception:
            await connection.close()
            raise

        self._connection = connection
        self._exchange = exchange
        logger.info("Publishing reservation events to %s", EXCHANGE_NAME)

    async def publish_event(self, event: dict) -> bool:
        """True once the exchange accepted the event."""
        if not self.enabled:
            return False

        try:
            await self.connect()
            await self._exchange.publish(
                build_message(event, self.app_id),
                routing_key=event["event_type"],
            )
        except Exception as e:
            logger.warning("Dropped event %s (%s): %s", event["event_id"], event["event_type"], e)
            return False
        return True

    async def close(self):
        connection = self._connection
        self._connection = None
        self._exchange = None
        if connection is not None and not connection.is_closed:
            await connection.close()
