"""
Job ID Derivation

Parent/child job ids are related by convention, not by a schema:

    child id  = parent id + DELIMITER + "seq" + sequence index
    parent id = child id with its last DELIMITER-separated segment stripped

Because child discovery is a prefix scan on "<parent id><DELIMITER>",
ids supplied from outside must never contain the delimiter. Generated
ids come from a JobIdFactory (uuid4 hex by default, which never does).

Key Concepts:
- Sequence index: 1-based position of the child in decomposition order
- Lossless: parent_job_id(child_job_id(p, n)) == p for every p and n
"""

import re
import uuid
from typing import Callable, Optional

DELIMITER = "-"
SEQUENCE_PREFIX = "seq"

_SEQUENCE_SEGMENT = re.compile(rf"^{SEQUENCE_PREFIX}(\d+)$")

# Callable returning a fresh, never-reused job id
JobIdFactory = Callable[[], str]


def new_job_id() -> str:
    """Default JobIdFactory: 32-char uuid4 hex (delimiter-free)."""
    return uuid.uuid4().hex


def child_job_id(parent_id: str, sequence_index: int) -> str:
    """
    Build the id of the N-th sequence job of a batch.

    Args:
        parent_id: Batch parent id
        sequence_index: 1-based index in decomposition order

    Returns:
        Child id, e.g. "job-2-seq1"

    Example:
        >>> child_job_id("job-2", 1)
        'job-2-seq1'
    """
    if sequence_index < 1:
        raise ValueError(f"sequence_index must be >= 1, got {sequence_index}")
    if not parent_id:
        raise ValueError("parent_id must be non-empty")
    return f"{parent_id}{DELIMITER}{SEQUENCE_PREFIX}{sequence_index}"


def parent_job_id(job_id: str) -> Optional[str]:
    """
    Recover the parent id by stripping the last delimited segment.

    Returns None when the id has no delimiter (it cannot be a child).

    Example:
        >>> parent_job_id("job-2-seq1")
        'job-2'
    """
    head, sep, _ = job_id.rpartition(DELIMITER)
    if not sep or not head:
        return None
    return head


def sequence_index(job_id: str) -> Optional[int]:
    """
    Parse the sequence index from a child id.

    Returns None when the last segment is not a sequence suffix.

    Example:
        >>> sequence_index("job-2-seq10")
        10
    """
    _, sep, tail = job_id.rpartition(DELIMITER)
    if not sep:
        return None
    match = _SEQUENCE_SEGMENT.match(tail)
    return int(match.group(1)) if match else None


def is_child_of(job_id: str, parent_id: str) -> bool:
    """Check whether job_id is a sequence child of parent_id."""
    return parent_job_id(job_id) == parent_id and sequence_index(job_id) is not None


def child_prefix(parent_id: str) -> str:
    """Prefix shared by every child id of parent_id."""
    return f"{parent_id}{DELIMITER}"


def validate_external_job_id(job_id: str) -> str:
    """
    Validate an id supplied from outside the system.

    Raises:
        ValueError: If the id is empty or contains the delimiter
    """
    if not job_id or not job_id.strip():
        raise ValueError("job id must be non-empty")
    if DELIMITER in job_id:
        raise ValueError(
            f"job id '{job_id}' must not contain '{DELIMITER}' "
            "(reserved for sequence job ids)"
        )
    return job_id


# Export public API
__all__ = [
    'DELIMITER',
    'JobIdFactory',
    'new_job_id',
    'child_job_id',
    'parent_job_id',
    'sequence_index',
    'is_child_of',
    'child_prefix',
    'validate_external_job_id',
]
