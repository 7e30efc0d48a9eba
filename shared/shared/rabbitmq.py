"""
Publishing domain events to the ``domain_events`` topic exchange.

Events are the envelopes built by ``shared.events.build_event``; the
``event_type`` doubles as the routing key. Publishing is best effort: a
broker outage is logged and never fails the request that produced the event.
"""

import asyncio
import logging

import aio_pika

from .events import to_json

EXCHANGE_NAME = "domain_events"

logger = logging.getLogger(__name__)


class RabbitPublisher:
    def __init__(self, rabbit_url: str | None):
        self.rabbit_url = rabbit_url
        # events are off entirely when no broker is configured
        self.enabled = bool(rabbit_url)
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None
        self._connect_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._exchange is not None and self._connection is not None and not self._connection.is_closed

    async def connect(self):
        if not self.enabled or self.connected:
            return

        async with self._connect_lock:
            if self.connected:
                return
            try:
                connection = await aio_pika.connect_robust(self.rabbit_url)
                channel = await connection.channel()
                self._exchange = await channel.declare_exchange(
                    EXCHANGE_NAME,
                    aio_pika.ExchangeType.TOPIC,
                    durable=True,
                )
                self._connection = connection
            except Exception:
                self._connection = None
                self._exchange = None
                raise

    def _message(self, event: dict) -> aio_pika.Message:
        return aio_pika.Message(
            body=to_json(event).encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=event["event_id"],
            type=event["event_type"],
            app_id=event.get("source"),
        )

    async def publish(self, event: dict) -> bool:
        """Send one envelope. True if the broker accepted it."""
        if not self.enabled:
            return False

        try:
            await self.connect()
        except Exception as e:
            logger.warning("RabbitMQ connect failed; dropping %s: %s", event["event_type"], e)
            return False

        try:
            await self._exchange.publish(self._message(event), routing_key=event["event_type"])
        except Exception as e:
            logger.warning("RabbitMQ publish %s failed: %s", event["event_type"], e)
            return False
        return True

    async def close(self):
        try:
            if self._connection and not self._connection.is_closed:
                await self._connection.close()
        finally:
            self._connection = None
            self._exchange = None
