"""
Main Application Configuration.

Composes domain-specific configuration modules:
    - BrokerConfig (AMQP broker and queues)
    - StorageConfig (Blob storage for job records and outputs)
    - WorkerConfig (Engine, isolation, timeout)

Exports:
    AppConfig: Main configuration class

Pattern:
    Composition over inheritance - domain configs are composed, not inherited.
"""

import os
from pydantic import BaseModel, Field

from .broker_config import BrokerConfig
from .storage_config import StorageConfig
from .worker_config import WorkerConfig
from .defaults import AppDefaults


# ============================================================================
# APPLICATION CONFIGURATION
# ============================================================================

class AppConfig(BaseModel):
    """
    Application configuration - composition of domain configs.

    Each domain config manages its own validation and defaults.
    """

    # ========================================================================
    # Core Application Settings
    # ========================================================================

    debug_mode: bool = Field(
        default=AppDefaults.DEBUG_MODE,
        description="Verbose diagnostics. Set DEBUG_MODE=true to enable."
    )

    environment: str = Field(
        default=AppDefaults.ENVIRONMENT,
        description="Environment name (dev, qa, prod)"
    )

    log_level: str = Field(default=AppDefaults.LOG_LEVEL)

    # ========================================================================
    # Domain Configurations
    # ========================================================================

    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)

    @classmethod
    def from_environment(cls) -> "AppConfig":
        """Load all configuration from environment variables."""
        return cls(
            debug_mode=os.environ.get("DEBUG_MODE", "false").lower() == "true",
            environment=os.environ.get("ENVIRONMENT", AppDefaults.ENVIRONMENT),
            log_level=os.environ.get("LOG_LEVEL", AppDefaults.LOG_LEVEL),
            broker=BrokerConfig.from_environment(),
            storage=StorageConfig.from_environment(),
            worker=WorkerConfig.from_environment(),
        )
