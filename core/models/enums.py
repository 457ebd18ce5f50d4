"""
Pure Enumeration Types for Core Framework.

Defines valid states for jobs and the classification values used by
the producer, dispatcher and isolation boundaries.
No business logic - pure type definitions only.

Exports:
    JobStatus: Job state enumeration
    JobKind: How a job was submitted
    IsolationMode: Worker isolation implementation selector
    InitialEstimator: Seed estimator for adaptive decomposition
"""

from enum import Enum


class JobStatus(str, Enum):
    """
    Valid status values for jobs.

    State transitions:
    - PENDING -> RUNNING -> COMPLETED (normal flow)
    - PENDING -> RUNNING -> FAILED (worker failure, timeout, crash)
    - PENDING -> COMPLETED / FAILED (running update lost to a store error)
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobKind(str, Enum):
    """How a job entered the system."""

    SINGLE = "single"                        # submit_single
    SEQUENCE = "sequence"                    # child of a plain batch
    ADAPTIVE_SEQUENCE = "adaptive_sequence"  # child of an adaptive batch
    BATCH = "batch"                          # parent record of a batch


class IsolationMode(str, Enum):
    """Worker isolation boundary implementations."""

    IN_PROCESS = "in_process"
    SUBPROCESS = "subprocess"


class InitialEstimator(str, Enum):
    """Cheap method used to seed the first adaptive estimate."""

    MONTE_CARLO = "monte_carlo"
    BDD = "bdd"
