# ============================================================================
# EXCEPTIONS
# ============================================================================
# STATUS: Shared - exception hierarchy for the whole orchestrator
# PURPOSE: Separate contract violations from expected runtime failures
# EXPORTS: ContractViolationError, BusinessLogicError and its subclasses,
#          ConfigurationError
# DEPENDENCIES: None (standard library only)
# ============================================================================

"""
Custom Exception Hierarchy

Distinguishes between:
1. Contract Violations (programming bugs that need fixing)
2. Business Logic Failures (expected runtime issues)

Business failures are grouped by the boundary that raises them:

    Submission:  RequestValidationError, EmptyDecomposition
    Broker:      QueueTopologyError, QueueUnavailable, MalformedMessage
    Execution:   WorkerFailure
    Storage:     StoreError, JobNotFoundError, InvalidTransitionError
"""

from typing import Optional


class ContractViolationError(TypeError):
    """
    Raised when component contracts are violated (programming bugs).

    Nothing handles these specifically - they indicate bugs that need
    fixing. The queue listener records one as UNEXPECTED_ERROR so the
    message is still settled.

    Examples:
        - Store receives a string instead of a JobStatus enum
        - Isolation boundary returns something other than WorkerOutcome
    """
    pass


class BusinessLogicError(Exception):
    """
    Base class for expected runtime business logic failures.

    These are normal failures that occur during system operation
    and should be handled gracefully without crashing.
    """
    pass


class RequestValidationError(BusinessLogicError):
    """
    A quantification request was rejected before any broker interaction.

    Examples:
        - Externally supplied job id contains the child-id delimiter
        - Convergence criteria with min_cut_off > max_cut_off
    """
    pass


class EmptyDecomposition(BusinessLogicError):
    """
    A batch request decomposed into zero sequence jobs.

    Raised before anything is recorded or published - a batch with no
    sequences has no parent to aggregate into.
    """

    def __init__(self, message: str = "no sequences extracted"):
        super().__init__(message)


class QueueTopologyError(BusinessLogicError):
    """
    Declaring or binding exchanges/queues failed.

    Fatal to startup of that queue. A queue whose setup raised this
    must not be consumed from.
    """

    def __init__(self, message: str, queue_name: Optional[str] = None):
        super().__init__(message)
        self.queue_name = queue_name


class QueueUnavailable(BusinessLogicError):
    """
    Publish or consume against the broker failed.

    Surfaced to the producer's caller, never retried internally.
    """

    def __init__(self, message: str, queue_name: Optional[str] = None):
        super().__init__(message)
        self.queue_name = queue_name


class MalformedMessage(BusinessLogicError):
    """
    A queue message could not be decoded into a QuantJobMessage.

    Poison-message policy: rejected without requeue, routed to the
    dead-letter queue, never dispatched to a worker.
    """
    pass


class WorkerFailure(BusinessLogicError):
    """
    The quantification computation raised, crashed or timed out.

    Taxonomy entry only: isolation boundaries never raise, they report
    failures as WorkerOutcome values, and the listener records those
    directly. Kept so callers holding a worker error code can map it
    through error_code_for() like any other failure.
    """

    def __init__(self, message: str, error_code: Optional[str] = None,
                 diagnostic: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code
        self.diagnostic = diagnostic


class StoreError(BusinessLogicError):
    """
    Job metadata or artifact read/write failed.

    Examples:
        - Blob service unreachable
        - Stored record is not valid JSON
    """
    pass


class JobNotFoundError(StoreError):
    """
    Requested job (or artifact) does not exist in the store.
    """

    def __init__(self, job_id: str, message: Optional[str] = None):
        super().__init__(message or f"Job '{job_id}' not found")
        self.job_id = job_id


class InvalidTransitionError(StoreError):
    """
    A status update would move a job backwards or out of a terminal state.
    """

    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(
            f"Job '{job_id}' cannot transition from {current} to {target}"
        )
        self.job_id = job_id
        self.current = current
        self.target = target


class ConfigurationError(Exception):
    """
    System configuration error.

    These are typically fatal and indicate misconfiguration
    that prevents the system from operating.

    Examples:
        - Missing broker URL
        - No storage connection string or account name
        - Unknown isolation mode
    """
    pass
