"""
Queue Publisher Interface

Defines the contract the producer uses to put job messages on a queue.
Keeping the producer on this interface lets tests substitute an
in-memory publisher for the AMQP broker connection.
"""

from abc import ABC, abstractmethod

from core.models.queue import QueueConfig
from core.models.request import QuantJobMessage


class IQueuePublisher(ABC):
    """
    Interface for publishing job messages.

    Implementations should handle:
    - Message encoding (JSON, persistent delivery)
    - Publisher confirmation
    - Translating transport errors to QueueUnavailable
    """

    @abstractmethod
    async def publish(self, queue: QueueConfig, message: QuantJobMessage) -> None:
        """
        Publish one message through the queue's exchange.

        Args:
            queue: Target queue topology (exchange + routing key)
            message: Message body

        Raises:
            QueueUnavailable: If the broker did not confirm the publish
        """
        pass
