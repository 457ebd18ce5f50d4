# ============================================================================
# QUEUE TOPOLOGY MANAGER
# ============================================================================
# STATUS: Infrastructure - AMQP exchange/queue declaration
# PURPOSE: Declare a durable work queue with its dead-letter pair and prefetch
# EXPORTS: QueueTopologyManager
# DEPENDENCIES: aio-pika, pydantic
# ============================================================================

"""
Queue Topology Manager

Declares, in order:

    1. dead-letter exchange, dead-letter queue, DLQ -> DLX binding
    2. main exchange
    3. main queue (TTL, max length, dead-letter arguments)
    4. channel prefetch
    5. main queue -> main exchange binding

Declarations are idempotent on the broker, so producers and every worker
run the same setup. Config is validated before anything is declared; any
failure surfaces as QueueTopologyError and the queue must not be used.
"""

from typing import Any, Mapping, Union

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractQueue
from pydantic import ValidationError

from core.models.queue import ExchangeConfig, QueueConfig
from exceptions import QueueTopologyError
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "QueueTopologyManager")


class QueueTopologyManager:
    """
    Declares queue topology on an aio-pika channel.

    Prefetch is a channel setting, so each queue should be set up on its
    own channel when queues need different prefetch values.
    """

    @staticmethod
    def validate_config(config: Union[QueueConfig, Mapping[str, Any]]) -> QueueConfig:
        """
        Coerce and validate a queue definition.

        Raises:
            QueueTopologyError: If the definition is invalid
        """
        if isinstance(config, QueueConfig):
            return config
        try:
            return QueueConfig.model_validate(config)
        except ValidationError as e:
            name = config.get("name") if isinstance(config, Mapping) else None
            raise QueueTopologyError(f"Invalid queue config: {e}", queue_name=name) from e

    async def declare_exchange(self, channel: AbstractChannel, exchange: ExchangeConfig) -> AbstractExchange:
        return await channel.declare_exchange(
            exchange.name,
            type=aio_pika.ExchangeType(exchange.type),
            durable=exchange.durable,
        )

    async def setup_queue(
        self,
        config: Union[QueueConfig, Mapping[str, Any]],
        channel: AbstractChannel,
    ) -> AbstractQueue:
        """
        Declare and bind a work queue and its dead-letter pair.

        Args:
            config: Queue definition (model or plain mapping)
            channel: Channel to declare on; its prefetch is set to config.prefetch

        Returns:
            The declared main queue

        Raises:
            QueueTopologyError: On invalid config or any broker failure
        """
        config = self.validate_config(config)

        try:
            dead_letter = config.dead_letter
            if dead_letter is not None:
                dlx = await self.declare_exchange(channel, dead_letter.exchange)
                dlq = await channel.declare_queue(dead_letter.name, durable=dead_letter.durable)
                await dlq.bind(dlx, routing_key=dead_letter.exchange.binding_key)
                logger.debug(
                    f"Dead-letter pair ready: {dead_letter.exchange.name} -> {dead_letter.name}"
                )

            exchange = await self.declare_exchange(channel, config.exchange)
            queue = await channel.declare_queue(
                config.name,
                durable=config.durable,
                arguments=config.queue_arguments(),
            )
            await channel.set_qos(prefetch_count=config.prefetch)
            await queue.bind(exchange, routing_key=config.exchange.binding_key)
        except Exception as e:
            logger.error(f"Topology setup failed for queue {config.name}: {e}")
            raise QueueTopologyError(
                f"Failed to set up queue {config.name}: {e}", queue_name=config.name
            ) from e

        logger.info(
            f"Queue ready: {config.name} (exchange={config.exchange.name}, "
            f"prefetch={config.prefetch}, dead_letter={dead_letter.name if dead_letter else None})"
        )
        return queue
