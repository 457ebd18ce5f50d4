"""
Queue Topology Factory.

Builds the QueueConfig for each work queue from BrokerConfig. Every work
queue gets its own exchange and its own dead-letter exchange/queue pair:

    <queue>.exchange --(<queue>)--> <queue>
        rejected/expired --> <queue>.dlx --(<queue>.dlq)--> <queue>.dlq

Exports:
    QueueConfigFactory: Builds per-queue topology definitions
"""

from typing import Dict, List

from core.models.queue import DeadLetterConfig, ExchangeConfig, QueueConfig
from .broker_config import BrokerConfig
from .defaults import BrokerDefaults


class QueueConfigFactory:
    """
    Factory for queue topology definitions.

    Example:
        factory = QueueConfigFactory(config.broker)
        queue_config = factory.quant_jobs()
    """

    def __init__(self, broker: BrokerConfig):
        self.broker = broker

    def build(self, queue_name: str) -> QueueConfig:
        """
        Build the topology for one work queue.

        Args:
            queue_name: Work queue name

        Returns:
            QueueConfig with exchange and dead-letter pair
        """
        dead_letter_name = f"{queue_name}{BrokerDefaults.DEAD_LETTER_SUFFIX}"
        return QueueConfig(
            name=queue_name,
            durable=True,
            message_ttl=self.broker.message_ttl_ms,
            max_length=self.broker.max_length,
            prefetch=self.broker.prefetch,
            exchange=ExchangeConfig(
                name=f"{queue_name}{BrokerDefaults.EXCHANGE_SUFFIX}",
                type=self.broker.exchange_type,
                durable=True,
                binding_key=queue_name,
                routing_key=queue_name,
            ),
            dead_letter=DeadLetterConfig(
                name=dead_letter_name,
                durable=True,
                exchange=ExchangeConfig(
                    name=f"{queue_name}{BrokerDefaults.DEAD_LETTER_EXCHANGE_SUFFIX}",
                    type=self.broker.exchange_type,
                    durable=True,
                    binding_key=dead_letter_name,
                    routing_key=dead_letter_name,
                ),
            ),
        )

    def quant_jobs(self) -> QueueConfig:
        return self.build(self.broker.quant_jobs_queue)

    def distributed_sequences(self) -> QueueConfig:
        return self.build(self.broker.distributed_sequences_queue)

    def adaptive_sequences(self) -> QueueConfig:
        return self.build(self.broker.adaptive_sequences_queue)

    def all(self) -> List[QueueConfig]:
        """All work queues, in declaration order."""
        return [self.quant_jobs(), self.distributed_sequences(), self.adaptive_sequences()]

    def by_name(self) -> Dict[str, QueueConfig]:
        return {config.name: config for config in self.all()}
