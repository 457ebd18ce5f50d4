"""
Unified Logger System.

JSON-only structured logging to stdout for the producer, the queue
listener and the worker processes.

Design Principles:
    - Enum safety for component categories and levels
    - Component-specific loggers from one factory
    - Job correlation fields travel with the record, not the logger

Exports:
    ComponentType: Enum for component types
    LogLevel: Enum for log levels
    LogContext: Job correlation fields
    JSONFormatter: One JSON object per log line
    JobLoggerAdapter: Logger bound to a LogContext
    LoggerFactory: Factory for creating loggers
    log_exceptions: Exception logging decorator

Environment:
    LOG_LEVEL       Default level for every component (default INFO)
    DEBUG_LOGGING   "true" forces DEBUG everywhere
"""

from enum import Enum
from typing import Optional, Dict, Any, MutableMapping, Tuple, Union
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from functools import wraps
import inspect
import logging
import sys
import os
import json
import traceback


# ============================================================================
# COMPONENT TYPES
# ============================================================================

class ComponentType(Enum):
    """Orchestrator layers; the logger name is '<component>.<name>'."""
    CONTROLLER = "controller"  # Queue listener / dispatch layer
    SERVICE = "service"        # Producer, stats and facade layer
    REPOSITORY = "repository"  # Object store and broker access layer
    TRIGGER = "trigger"        # Process entry points
    ADAPTER = "adapter"        # Worker isolation / engine integration


# ============================================================================
# LOG LEVELS
# ============================================================================

class LogLevel(Enum):
    """Standard Python log levels as enum for type safety."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        return getattr(logging, self.value)

    @classmethod
    def from_string(cls, level: str) -> 'LogLevel':
        """Case-insensitive; unknown names fall back to INFO."""
        try:
            return cls[level.strip().upper()]
        except KeyError:
            return cls.INFO


def default_level() -> LogLevel:
    """Level for new loggers, read from the environment at call time."""
    if os.getenv('DEBUG_LOGGING', '').lower() == 'true':
        return LogLevel.DEBUG
    return LogLevel.from_string(os.getenv('LOG_LEVEL', 'INFO'))


# ============================================================================
# LOG CONTEXT
# ============================================================================

@dataclass
class LogContext:
    """
    Correlation fields attached to every record of one job.

    Child job ids embed their parent id, so parent_job_id is only
    needed when filtering a whole batch in the log sink.
    """
    job_id: Optional[str] = None
    parent_job_id: Optional[str] = None
    queue: Optional[str] = None
    worker_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


# ============================================================================
# JSON FORMATTER
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    One JSON object per line so log shippers can parse without config.

    Fields passed as extra={'context': {...}} are merged into the
    top-level "context" object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
        }

        context = getattr(record, 'context', None)
        if context:
            log_obj['context'] = context

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_obj['exception'] = {
                'type': exc_type.__name__ if exc_type else None,
                'message': str(exc_value) if exc_value else None,
                'traceback': self.formatException(record.exc_info),
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# CONTEXT ADAPTER
# ============================================================================

class JobLoggerAdapter(logging.LoggerAdapter):
    """
    Logger bound to one job's LogContext.

    Per-call extra={'context': {...}} entries are merged over the bound
    context.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get('extra') or {})
        extra['context'] = {**self.extra, **extra.get('context', {})}
        kwargs['extra'] = extra
        return msg, kwargs


# ============================================================================
# LOGGER FACTORY
# ============================================================================

class LoggerFactory:
    """
    Factory for creating component-specific loggers.

    Example:
        logger = LoggerFactory.create_logger(ComponentType.CONTROLLER, "QuantJobListener")
        logger.info("Consuming from quant-jobs")

        log = LoggerFactory.create_with_context(
            ComponentType.CONTROLLER, "QuantJobListener", job_id="job-1", queue="quant-jobs"
        )
        log.info("Dispatching")   # context: {"job_id": "job-1", "queue": "quant-jobs"}
    """

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        level: Optional[Union[LogLevel, str]] = None,
    ) -> logging.Logger:
        """
        Create (or fetch) the logger for a component.

        Args:
            component_type: Type of component
            name: Component name (e.g., "QuantJobListener")
            level: Override for the environment default

        Returns:
            Logger with exactly one JSON stdout handler
        """
        if level is None:
            level = default_level()
        elif isinstance(level, str):
            level = LogLevel.from_string(level)

        logger = logging.getLogger(f"{component_type.value}.{name}")
        logger.setLevel(level.to_python_level())

        # Repeated calls for the same name must not stack handlers
        if not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)

        # Keep propagation so pytest caplog still sees records
        logger.propagate = True
        return logger

    @classmethod
    def create_with_context(
        cls,
        component_type: ComponentType,
        name: str,
        job_id: Optional[str] = None,
        parent_job_id: Optional[str] = None,
        queue: Optional[str] = None,
        worker_id: Optional[str] = None,
    ) -> JobLoggerAdapter:
        """
        Component logger bound to one job's correlation fields.

        Returns:
            JobLoggerAdapter whose records carry the context
        """
        context = LogContext(job_id=job_id, parent_job_id=parent_job_id, queue=queue, worker_id=worker_id)
        return JobLoggerAdapter(cls.create_logger(component_type, name), context.to_dict())


# ============================================================================
# EXCEPTION DECORATOR
# ============================================================================

def log_exceptions(component_type: Optional[ComponentType] = None,
                   component_name: Optional[str] = None,
                   logger: Optional[logging.Logger] = None):
    """
    Decorator to log exceptions with call details and re-raise them.

    Works on plain functions and coroutine functions.

    Example:
        @log_exceptions(ComponentType.CONTROLLER, "QuantWorker")
        async def run(self, stop_event):
            ...
    """
    def decorator(func):
        def _log(e: Exception, args, kwargs) -> None:
            target = logger
            if target is None:
                target = LoggerFactory.create_logger(
                    component_type or ComponentType.SERVICE,
                    component_name or func.__module__ or "unknown",
                )
            target.error(
                f"Exception in {func.__qualname__}: {type(e).__name__}: {e}",
                exc_info=True,
                extra={
                    'context': {
                        'function': func.__qualname__,
                        'module': func.__module__,
                        'exception_type': type(e).__name__,
                        'args': str(args)[:500],
                        'kwargs': str(kwargs)[:500],
                        'traceback': traceback.format_exc(),
                    }
                }
            )

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    _log(e, args, kwargs)
                    raise
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _log(e, args, kwargs)
                raise
        return wrapper
    return decorator
