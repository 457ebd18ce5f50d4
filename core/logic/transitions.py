"""
State Transition Logic for Jobs.

Contains business rules for valid state transitions and for deriving a
batch parent's status from its children.
Separated from data models for clean architecture.

Exports:
    can_job_transition: Check if job state transition is valid
    get_job_terminal_states: Get terminal states for jobs
    get_job_active_states: Get non-terminal states for jobs
    is_job_terminal: Check if job is in terminal state
    rollup_status: Derive a batch parent's status from its children

Dependencies:
    core.models.enums: JobStatus
"""

from typing import Iterable, List

from ..models.enums import JobStatus


def can_job_transition(current: JobStatus, target: JobStatus) -> bool:
    """
    Check if a job can transition from current to target status.

    Args:
        current: Current job status
        target: Target job status

    Returns:
        True if transition is valid, False otherwise
    """
    # Same status is always allowed (no-op)
    if current == target:
        return True

    # PENDING may jump straight to a terminal state when the
    # best-effort RUNNING write was lost
    transitions = {
        JobStatus.PENDING: [JobStatus.RUNNING, JobStatus.COMPLETED, JobStatus.FAILED],
        JobStatus.RUNNING: [JobStatus.COMPLETED, JobStatus.FAILED],
        JobStatus.COMPLETED: [],  # Terminal state
        JobStatus.FAILED: [],  # Terminal state
    }

    return target in transitions.get(current, [])


def get_job_terminal_states() -> List[JobStatus]:
    """
    Get list of terminal states for jobs.

    Returns:
        List of terminal job statuses
    """
    return [
        JobStatus.COMPLETED,
        JobStatus.FAILED,
    ]


def get_job_active_states() -> List[JobStatus]:
    """
    Get list of active (non-terminal) states for jobs.

    Returns:
        List of active job statuses
    """
    return [
        JobStatus.PENDING,
        JobStatus.RUNNING,
    ]


def is_job_terminal(status: JobStatus) -> bool:
    """
    Check if a job status is terminal.

    Args:
        status: Job status to check

    Returns:
        True if status is terminal, False otherwise
    """
    return status in get_job_terminal_states()


def rollup_status(parent_status: JobStatus, child_statuses: Iterable[JobStatus]) -> JobStatus:
    """
    Derive the status a batch parent should report.

    A terminal parent keeps its own status. Otherwise:
    - no children visible yet: parent status
    - every child terminal: COMPLETED if all completed, else FAILED
    - any child started or finished: RUNNING
    - all children pending: PENDING

    Args:
        parent_status: Status stored on the parent record
        child_statuses: Statuses of the children that exist

    Returns:
        Rolled-up status
    """
    if is_job_terminal(parent_status):
        return parent_status

    statuses = list(child_statuses)
    if not statuses:
        return parent_status

    if all(is_job_terminal(s) for s in statuses):
        if all(s == JobStatus.COMPLETED for s in statuses):
            return JobStatus.COMPLETED
        return JobStatus.FAILED

    if any(s != JobStatus.PENDING for s in statuses):
        return JobStatus.RUNNING

    return JobStatus.PENDING
