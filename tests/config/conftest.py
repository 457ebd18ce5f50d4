"""
Config test fixtures - clean environment via monkeypatch.
"""

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all env vars that config modules might read, for isolation."""
    env_vars_to_clear = [
        "AMQP_URL", "QUANT_JOBS_QUEUE", "DISTRIBUTED_SEQUENCES_QUEUE", "ADAPTIVE_SEQUENCES_QUEUE",
        "BROKER_EXCHANGE_TYPE", "BROKER_PREFETCH", "BROKER_MESSAGE_TTL_MS", "BROKER_MAX_LENGTH",
        "STORAGE_CONNECTION_STRING", "STORAGE_ACCOUNT_NAME", "JOBS_CONTAINER", "OUTPUTS_CONTAINER",
        "INPUTS_CONTAINER",
        "QUANT_ENGINE", "WORKER_ISOLATION_MODE", "WORKER_TIMEOUT_SECONDS", "WORKER_ID",
        "WORKER_QUEUES", "WORKER_SHUTDOWN_TIMEOUT",
        "DEBUG_MODE", "ENVIRONMENT", "LOG_LEVEL",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


@pytest.fixture(autouse=True)
def fresh_config_cache():
    """Drop the cached AppConfig around every config test."""
    from config import reset_config
    reset_config()
    yield
    reset_config()
