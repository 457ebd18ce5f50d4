"""
Quant Worker Module

Consumes quantification job messages and runs the engine behind an
isolation boundary.

Components:
    - listener.py:         Consumes work queues, records outcomes, acks/rejects
    - isolation.py:        In-process and subprocess isolation boundaries
    - engine_registry.py:  Engine name / module:attribute resolution

Usage:
    from quant_worker import QuantJobListener, create_isolation

    listener = QuantJobListener(broker, store, create_isolation(mode), queues,
                                engine_ref="scram", timeout_seconds=3600)
    await listener.run(stop_event)
"""

from .engine_registry import register_engine, resolve_engine
from .isolation import (
    IsolationBoundary,
    InProcessIsolation,
    SubprocessIsolation,
    create_isolation,
)
from .listener import QuantJobListener, decode_message

__all__ = [
    "register_engine",
    "resolve_engine",
    "IsolationBoundary",
    "InProcessIsolation",
    "SubprocessIsolation",
    "create_isolation",
    "QuantJobListener",
    "decode_message",
]
