# ============================================================================
# AMQP BROKER CONNECTION
# ============================================================================
# STATUS: Infrastructure - broker connection and publisher
# PURPOSE: Own the AMQP connection, hand out channels, publish job messages
# EXPORTS: BrokerConnection
# DEPENDENCIES: aio-pika
# ============================================================================

"""
AMQP Broker Connection

One BrokerConnection per process, created by the entry point and passed
to the producer (as its IQueuePublisher) and to the queue listener (for
consumer channels).

Publishing:
    - JSON body, content type application/json, persistent delivery
    - Channel opened with publisher confirms; publish returns only after
      the broker confirmed it
    - Any transport failure or missing confirmation -> QueueUnavailable
    - No internal retry; the caller decides
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

import aio_pika
from aio_pika import DeliveryMode, Message
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractRobustConnection
from aio_pika.exceptions import AMQPError

from config.broker_config import BrokerConfig
from core.models.queue import QueueConfig
from core.models.request import QuantJobMessage
from exceptions import QueueTopologyError, QueueUnavailable
from interfaces.repository import IQueuePublisher
from util_logger import LoggerFactory, ComponentType

from .queue_topology import QueueTopologyManager

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "BrokerConnection")

ConnectFactory = Callable[..., Awaitable[AbstractRobustConnection]]

JSON_CONTENT_TYPE = "application/json"


class BrokerConnection(IQueuePublisher):
    """
    AMQP connection owner and job message publisher.

    Usage:
        async with BrokerConnection(config.broker.url) as broker:
            await broker.prepare(QueueConfigFactory(config.broker).all())
            await broker.publish(queue_config, message)
    """

    def __init__(
        self,
        url: str,
        topology: Optional[QueueTopologyManager] = None,
        publish_timeout: float = 30.0,
        connect: ConnectFactory = aio_pika.connect_robust,
    ):
        self.url = url
        self.topology = topology or QueueTopologyManager()
        self.publish_timeout = publish_timeout
        self._connect = connect
        self._connection: Optional[AbstractRobustConnection] = None
        self._publish_channel: Optional[AbstractChannel] = None
        self._exchanges: Dict[str, AbstractExchange] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: BrokerConfig, **kwargs: Any) -> "BrokerConnection":
        return cls(config.url, **kwargs)

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self) -> None:
        """
        Open the connection (idempotent).

        Raises:
            QueueUnavailable: If the broker cannot be reached
        """
        if self.is_connected:
            return
        try:
            self._connection = await self._connect(self.url)
        except (AMQPError, ConnectionError, OSError, asyncio.TimeoutError) as e:
            raise QueueUnavailable(f"Cannot connect to broker: {e}") from e
        logger.info("Connected to AMQP broker")

    async def close(self) -> None:
        """Close channels and the connection."""
        self._exchanges.clear()
        self._publish_channel = None
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Broker connection closed")

    async def __aenter__(self) -> "BrokerConnection":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def channel(self, publisher_confirms: bool = True) -> AbstractChannel:
        """Open a new channel on the shared connection."""
        await self.connect()
        try:
            return await self._connection.channel(publisher_confirms=publisher_confirms)
        except (AMQPError, ConnectionError, asyncio.TimeoutError) as e:
            raise QueueUnavailable(f"Cannot open channel: {e}") from e

    # ========================================================================
    # PUBLISHING
    # ========================================================================

    async def _get_publish_channel(self) -> AbstractChannel:
        if self._publish_channel is None or self._publish_channel.is_closed:
            self._publish_channel = await self.channel(publisher_confirms=True)
            self._exchanges.clear()
        return self._publish_channel

    async def prepare(self, queues: Iterable[QueueConfig]) -> None:
        """
        Declare topology for queues this process publishes to.

        Messages published before their queue is bound would be dropped
        as unroutable, so producers declare too.

        Raises:
            QueueTopologyError: If declaration fails
        """
        async with self._lock:
            channel = await self._get_publish_channel()
            for queue in queues:
                await self.topology.setup_queue(queue, channel)
                self._exchanges[queue.name] = await self.topology.declare_exchange(channel, queue.exchange)

    async def _exchange_for(self, queue: QueueConfig) -> AbstractExchange:
        exchange = self._exchanges.get(queue.name)
        if exchange is None:
            await self.prepare([queue])
            exchange = self._exchanges[queue.name]
        return exchange

    async def publish(self, queue: QueueConfig, message: QuantJobMessage) -> None:
        """
        Publish one job message and wait for the broker's confirmation.

        Raises:
            QueueUnavailable: If the message was not confirmed
        """
        try:
            exchange = await self._exchange_for(queue)
            await exchange.publish(
                Message(
                    body=message.model_dump_json().encode("utf-8"),
                    content_type=JSON_CONTENT_TYPE,
                    delivery_mode=DeliveryMode.PERSISTENT,
                    message_id=message.job_id,
                ),
                routing_key=queue.exchange.routing_key,
                timeout=self.publish_timeout,
            )
        except QueueUnavailable:
            raise
        except (QueueTopologyError, AMQPError, ConnectionError, asyncio.TimeoutError) as e:
            logger.error(f"Publish of {message.job_id} to {queue.name} failed: {e}")
            raise QueueUnavailable(
                f"Publish of job {message.job_id} to {queue.name} was not confirmed: {e}",
                queue_name=queue.name,
            ) from e

        logger.debug(f"Published {message.job_id} to {queue.name}")
