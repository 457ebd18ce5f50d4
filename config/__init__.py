"""
Configuration Package - Domain-Specific Configuration Modules

Structure:
    config/
    ├── __init__.py              # This file - exports and process-level accessor
    ├── app_config.py            # Main config (composes domain configs)
    ├── broker_config.py         # AMQP broker and queue names
    ├── storage_config.py        # Blob storage containers and auth
    ├── worker_config.py         # Engine, isolation mode, timeout
    ├── queue_topology.py        # QueueConfig per work queue
    └── defaults.py              # Default values

Usage:
    # Process entry points only; components receive config explicitly
    from config import get_config
    config = get_config()
    prefetch = config.broker.prefetch

    # Debug output
    from config import debug_config
    info = debug_config()  # Secrets masked
"""

from typing import Optional

from .broker_config import BrokerConfig, QueueNames
from .storage_config import StorageConfig
from .worker_config import WorkerConfig
from .app_config import AppConfig
from .queue_topology import QueueConfigFactory


# ============================================================================
# PROCESS-LEVEL ACCESSOR
# ============================================================================

_config_instance: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the environment-loaded configuration (cached per process).

    Returns:
        AppConfig instance loaded from environment
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = AppConfig.from_environment()
    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration (tests, reloads)."""
    global _config_instance
    _config_instance = None


def debug_config() -> dict:
    """
    Get sanitized configuration for debugging (masks sensitive values).

    Returns:
        Dictionary with configuration values, secrets masked
    """
    try:
        config = get_config()
        return {
            'broker': config.broker.debug_dict(),
            'storage': config.storage.debug_dict(),
            'worker': {
                'engine': config.worker.engine,
                'isolation_mode': config.worker.isolation_mode.value,
                'timeout_seconds': config.worker.timeout_seconds,
                'worker_id': config.worker.worker_id,
                'consume_queues': config.worker.consume_queues,
            },
            'debug_mode': config.debug_mode,
            'environment': config.environment,
            'log_level': config.log_level,
        }
    except Exception as e:
        return {'error': f'Configuration validation failed: {e}'}


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    'AppConfig',
    'get_config',
    'reset_config',
    'debug_config',
    'BrokerConfig',
    'QueueNames',
    'StorageConfig',
    'WorkerConfig',
    'QueueConfigFactory',
]
