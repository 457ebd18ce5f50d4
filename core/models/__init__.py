"""
Core Data Models Package.

Contains pure data structures without business logic.
All business logic is in the core.logic package.

Exports:
    JobStatus, JobKind, IsolationMode, InitialEstimator: Enums
    JobMetadata, JobStats: Job lifecycle record
    ConvergenceCriteria, QuantifyRequest, QuantJobMessage: Request models
    ExchangeConfig, DeadLetterConfig, QueueConfig: Queue topology
    WorkerTask, WorkerOutcome: Worker execution contract
"""

# Enums
from .enums import (
    JobStatus,
    JobKind,
    IsolationMode,
    InitialEstimator,
)

# Job models
from .job import JobMetadata, JobStats, INTERNAL_STATS_FIELDS

# Request models
from .request import (
    ConvergenceCriteria,
    QuantifyRequest,
    QuantJobMessage,
)

# Queue topology
from .queue import (
    ExchangeConfig,
    DeadLetterConfig,
    QueueConfig,
)

# Worker execution
from .results import WorkerTask, WorkerOutcome

__all__ = [
    # Enums
    'JobStatus',
    'JobKind',
    'IsolationMode',
    'InitialEstimator',

    # Job
    'JobMetadata',
    'JobStats',
    'INTERNAL_STATS_FIELDS',

    # Request
    'ConvergenceCriteria',
    'QuantifyRequest',
    'QuantJobMessage',

    # Queue
    'ExchangeConfig',
    'DeadLetterConfig',
    'QueueConfig',

    # Worker
    'WorkerTask',
    'WorkerOutcome',
]
