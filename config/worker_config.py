"""
Worker Configuration.

How a worker process runs the quantification engine.

Exports:
    WorkerConfig: Pydantic worker configuration model
"""

import os
import socket
from typing import List, Optional

from pydantic import BaseModel, Field

from core.models.enums import IsolationMode
from .defaults import WorkerDefaults


class WorkerConfig(BaseModel):
    """
    Configuration for queue workers.

    engine is a registered engine name or a "package.module:attribute"
    reference to a compute(settings, model) callable.
    """

    engine: Optional[str] = Field(
        default=None,
        description="Engine registry name or module:attribute reference"
    )

    isolation_mode: IsolationMode = Field(
        default=IsolationMode(WorkerDefaults.ISOLATION_MODE),
        description="in_process (thread) or subprocess (spawned process)"
    )

    timeout_seconds: float = Field(
        default=WorkerDefaults.TIMEOUT_SECONDS,
        ge=WorkerDefaults.MIN_TIMEOUT_SECONDS,
        le=WorkerDefaults.MAX_TIMEOUT_SECONDS,
        description="Per-job deadline; exceeding it fails the job"
    )

    worker_id: str = Field(default_factory=socket.gethostname)

    consume_queues: List[str] = Field(
        default_factory=list,
        description="Queue names this worker consumes (empty = all configured queues)"
    )

    shutdown_timeout_seconds: int = Field(default=30, ge=0)

    @classmethod
    def from_environment(cls) -> "WorkerConfig":
        """
        Load configuration from environment variables.

        Environment Variables:
            QUANT_ENGINE: Engine name or module:attribute (required)
            WORKER_ISOLATION_MODE: in_process | subprocess (default: subprocess)
            WORKER_TIMEOUT_SECONDS: Per-job deadline (default: 3600)
            WORKER_ID: Worker identifier (default: hostname)
            WORKER_QUEUES: Comma-separated queue names (default: all)
        """
        queues = os.environ.get("WORKER_QUEUES", "")
        return cls(
            engine=os.environ.get("QUANT_ENGINE") or None,
            isolation_mode=IsolationMode(
                os.environ.get("WORKER_ISOLATION_MODE", WorkerDefaults.ISOLATION_MODE).lower()
            ),
            timeout_seconds=float(
                os.environ.get("WORKER_TIMEOUT_SECONDS", str(WorkerDefaults.TIMEOUT_SECONDS))
            ),
            worker_id=os.environ.get("WORKER_ID", socket.gethostname()),
            consume_queues=[q.strip() for q in queues.split(",") if q.strip()],
            shutdown_timeout_seconds=int(os.environ.get("WORKER_SHUTDOWN_TIMEOUT", "30")),
        )

    def validation_errors(self) -> List[str]:
        """
        Validate configuration, including that the engine resolves.

        Returns:
            List of validation errors (empty if valid)
        """
        from quant_worker.engine_registry import resolve_engine

        errors = []
        if not self.engine:
            errors.append("QUANT_ENGINE is required")
            return errors
        try:
            resolve_engine(self.engine)
        except (LookupError, ImportError, AttributeError, TypeError, ValueError) as e:
            errors.append(f"QUANT_ENGINE '{self.engine}' cannot be resolved: {e}")
        return errors
