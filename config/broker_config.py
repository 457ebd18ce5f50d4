"""
AMQP Broker Configuration.

Provides configuration for:
    - Broker connection URL
    - Queue names (quant jobs, distributed sequences, adaptive sequences)
    - Backpressure settings (prefetch, TTL, max length)
    - Exchange type

Exports:
    BrokerConfig: Pydantic broker configuration model
    QueueNames: Queue name constants
"""

import os
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, Field, field_validator

from .defaults import BrokerDefaults


# ============================================================================
# QUEUE NAMES
# ============================================================================

class QueueNames:
    """Queue name constants for easy access."""
    QUANT_JOBS = BrokerDefaults.QUANT_JOBS_QUEUE
    DISTRIBUTED_SEQUENCES = BrokerDefaults.DISTRIBUTED_SEQUENCES_QUEUE
    ADAPTIVE_SEQUENCES = BrokerDefaults.ADAPTIVE_SEQUENCES_QUEUE


# ============================================================================
# BROKER CONFIGURATION
# ============================================================================

class BrokerConfig(BaseModel):
    """
    AMQP broker configuration.

    Queue Architecture:
    - quant_jobs_queue: single (non-decomposed) quantifications
    - distributed_sequences_queue: children of plain sequence batches
    - adaptive_sequences_queue: children of adaptive sequence batches
    """

    url: str = Field(
        default=BrokerDefaults.AMQP_URL,
        repr=False,
        description="AMQP connection URL (credentials included)"
    )

    quant_jobs_queue: str = Field(default=BrokerDefaults.QUANT_JOBS_QUEUE)
    distributed_sequences_queue: str = Field(default=BrokerDefaults.DISTRIBUTED_SEQUENCES_QUEUE)
    adaptive_sequences_queue: str = Field(default=BrokerDefaults.ADAPTIVE_SEQUENCES_QUEUE)

    exchange_type: str = Field(
        default=BrokerDefaults.EXCHANGE_TYPE,
        description="Exchange type for work and dead-letter exchanges"
    )

    prefetch: int = Field(
        default=BrokerDefaults.PREFETCH,
        ge=1,
        le=1000,
        description="Max unacknowledged messages per queue per consumer"
    )

    message_ttl_ms: Optional[int] = Field(
        default=BrokerDefaults.MESSAGE_TTL_MS,
        ge=0,
        description="Per-message TTL; expired messages are dead-lettered"
    )

    max_length: Optional[int] = Field(
        default=BrokerDefaults.MAX_LENGTH,
        ge=1,
        description="Max ready messages per queue"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("amqp://", "amqps://")):
            raise ValueError("broker url must start with amqp:// or amqps://")
        return v

    def masked_url(self) -> str:
        """URL with the password replaced, safe to log."""
        parts = urlsplit(self.url)
        if parts.password is None:
            return self.url
        netloc = parts.netloc.replace(f":{parts.password}@", ":***@")
        return urlunsplit(parts._replace(netloc=netloc))

    @classmethod
    def from_environment(cls):
        """Load from environment variables."""
        ttl = os.environ.get("BROKER_MESSAGE_TTL_MS")
        max_length = os.environ.get("BROKER_MAX_LENGTH")
        return cls(
            url=os.environ.get("AMQP_URL", BrokerDefaults.AMQP_URL),
            quant_jobs_queue=os.environ.get("QUANT_JOBS_QUEUE", BrokerDefaults.QUANT_JOBS_QUEUE),
            distributed_sequences_queue=os.environ.get(
                "DISTRIBUTED_SEQUENCES_QUEUE", BrokerDefaults.DISTRIBUTED_SEQUENCES_QUEUE
            ),
            adaptive_sequences_queue=os.environ.get(
                "ADAPTIVE_SEQUENCES_QUEUE", BrokerDefaults.ADAPTIVE_SEQUENCES_QUEUE
            ),
            exchange_type=os.environ.get("BROKER_EXCHANGE_TYPE", BrokerDefaults.EXCHANGE_TYPE),
            prefetch=int(os.environ.get("BROKER_PREFETCH", str(BrokerDefaults.PREFETCH))),
            message_ttl_ms=int(ttl) if ttl else BrokerDefaults.MESSAGE_TTL_MS,
            max_length=int(max_length) if max_length else BrokerDefaults.MAX_LENGTH,
        )

    def debug_dict(self) -> dict:
        return {
            'url': self.masked_url(),
            'queues': [
                self.quant_jobs_queue,
                self.distributed_sequences_queue,
                self.adaptive_sequences_queue,
            ],
            'exchange_type': self.exchange_type,
            'prefetch': self.prefetch,
            'message_ttl_ms': self.message_ttl_ms,
            'max_length': self.max_length,
        }
