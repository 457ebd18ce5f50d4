"""
Queue Topology Models.

Declarative definition of one durable work queue, the exchange it is
bound to, and its optional dead-letter exchange/queue pair.

Exports:
    ExchangeConfig: Exchange name, type, durability and routing keys
    DeadLetterConfig: Dead-letter queue plus its exchange
    QueueConfig: Main queue definition
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


_EXCHANGE_TYPES = ("direct", "topic", "fanout", "headers")


class ExchangeConfig(BaseModel):
    """AMQP exchange definition."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=255)
    type: str = Field(default="topic", description="direct | topic | fanout | headers")
    durable: bool = Field(default=True)
    binding_key: str = Field(default="", description="Key used to bind the queue to this exchange")
    routing_key: str = Field(default="", description="Key used when publishing to this exchange")

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        v = v.lower()
        if v not in _EXCHANGE_TYPES:
            raise ValueError(f"Invalid exchange type: {v}. Must be one of {_EXCHANGE_TYPES}")
        return v


class DeadLetterConfig(BaseModel):
    """Dead-letter queue and the exchange rejected messages are routed through."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=255)
    durable: bool = Field(default=True)
    exchange: ExchangeConfig


class QueueConfig(BaseModel):
    """
    Durable work queue definition.

    When dead_letter is set, the dead-letter exchange and queue are declared
    and bound before this queue, and this queue's dead-letter arguments point
    at that exchange and its binding key.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=255)
    durable: bool = Field(default=True)
    message_ttl: Optional[int] = Field(default=None, ge=0, description="Per-message TTL in milliseconds")
    max_length: Optional[int] = Field(default=None, ge=1, description="Maximum ready messages")
    prefetch: int = Field(default=1, ge=1, description="Max unacknowledged messages per consumer")
    exchange: ExchangeConfig
    dead_letter: Optional[DeadLetterConfig] = None

    def queue_arguments(self) -> Dict[str, Any]:
        """Broker arguments for declaring the main queue."""
        arguments: Dict[str, Any] = {}
        if self.message_ttl is not None:
            arguments["x-message-ttl"] = self.message_ttl
        if self.max_length is not None:
            arguments["x-max-length"] = self.max_length
        if self.dead_letter is not None:
            arguments["x-dead-letter-exchange"] = self.dead_letter.exchange.name
            arguments["x-dead-letter-routing-key"] = self.dead_letter.exchange.binding_key
        return arguments
