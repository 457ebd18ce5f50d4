# ============================================================================
# QUANTIFICATION ENGINE REGISTRY
# ============================================================================
# STATUS: Core - Engine name -> compute function mapping
# PURPOSE: Resolve the configured engine reference to a callable
# ============================================================================
"""
Quantification Engine Registry

An engine is a callable compute(settings, model) -> result. The
orchestrator never looks inside settings, model or result beyond
lifting known stats fields out of the result.

References accepted by resolve_engine:
    "name"                      registered with @register_engine("name")
    "package.module:attribute"  imported on demand (dotted attribute ok)

Usage:
    from quant_worker.engine_registry import register_engine, resolve_engine

    @register_engine("scram")
    def scram(settings: dict, model: dict) -> dict:
        ...

    compute = resolve_engine("scram")
"""

import importlib
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

# Engines can be sync or async; settings is a mapping, model is opaque
EngineFunc = Callable[[Dict[str, Any], Any], Any]

_REGISTRY: Dict[str, EngineFunc] = {}

REFERENCE_SEPARATOR = ":"


def register_engine(name: str):
    """
    Decorator to register an engine function.

    Args:
        name: Engine name (used in QUANT_ENGINE)
    """
    def decorator(func: EngineFunc) -> EngineFunc:
        if name in _REGISTRY:
            logger.warning(f"Engine '{name}' already registered, overwriting")
        _REGISTRY[name] = func
        logger.debug(f"Registered engine: {name}")
        return func
    return decorator


def get_engine(name: str) -> EngineFunc:
    """
    Look up a registered engine by name.

    Raises:
        KeyError: If no engine is registered under the name
    """
    if name not in _REGISTRY:
        raise KeyError(
            f"Unknown engine: '{name}'. "
            f"Available engines: {list(_REGISTRY.keys())}"
        )
    return _REGISTRY[name]


def has_engine(name: str) -> bool:
    return name in _REGISTRY


def list_engines() -> List[str]:
    return list(_REGISTRY.keys())


def clear_registry() -> None:
    """Clear all registered engines (for testing)."""
    _REGISTRY.clear()


def _import_reference(reference: str) -> EngineFunc:
    module_name, _, attribute = reference.partition(REFERENCE_SEPARATOR)
    if not module_name or not attribute:
        raise ValueError(f"Engine reference must be 'module:attribute', got '{reference}'")

    target: Any = importlib.import_module(module_name)
    for part in attribute.split("."):
        target = getattr(target, part)

    if not callable(target):
        raise TypeError(f"Engine reference '{reference}' is not callable")
    return target


def resolve_engine(reference: str) -> EngineFunc:
    """
    Resolve a registry name or module:attribute reference.

    Raises:
        KeyError: Unknown registry name
        ImportError / AttributeError: Reference does not import
        TypeError: Reference is not callable
    """
    if REFERENCE_SEPARATOR in reference:
        return _import_reference(reference)
    return get_engine(reference)


def importable_reference(reference: str) -> str:
    """
    Convert a reference into module:attribute form.

    Spawned worker processes start with an empty registry; they import
    the engine from this reference instead (which also re-runs any
    @register_engine decorators in that module).
    """
    if REFERENCE_SEPARATOR in reference:
        return reference
    func = get_engine(reference)
    return f"{func.__module__}{REFERENCE_SEPARATOR}{func.__qualname__}"
