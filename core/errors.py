"""
Error Code Definitions and Classification.

Centralized error code management with retry classification and
consistent rejection responses for the caller-facing surface.

Key Features:
    - Explicit error codes for all failure modes
    - Retry classification (PERMANENT, TRANSIENT)
    - HTTP status mapping for request-rejected conditions

Exports:
    ErrorCode: Standardized error codes enum
    ErrorClassification: Error category enum
    is_retryable: Helper to check if error could succeed on resubmission
    error_code_for: Map an exception to its ErrorCode
    create_error_response: Build a standardized rejection dict
"""

from enum import Enum
from typing import Dict, Any

from exceptions import (
    EmptyDecomposition,
    JobNotFoundError,
    MalformedMessage,
    QueueTopologyError,
    QueueUnavailable,
    RequestValidationError,
    StoreError,
    WorkerFailure,
)


class ErrorCode(str, Enum):
    """
    Standardized error codes for all application errors.

    Stored on failed job records and returned in rejection responses.
    """

    # ========================================================================
    # SUBMISSION ERRORS - CLIENT ERRORS (HTTP 400/404)
    # ========================================================================
    VALIDATION_ERROR = "VALIDATION_ERROR"  # Request failed validation
    EMPTY_DECOMPOSITION = "EMPTY_DECOMPOSITION"  # Batch yielded no sequences
    JOB_NOT_FOUND = "JOB_NOT_FOUND"  # Unknown or not-yet-visible job id

    # ========================================================================
    # MESSAGE ERRORS
    # ========================================================================
    MALFORMED_MESSAGE = "MALFORMED_MESSAGE"  # Undecodable queue payload

    # ========================================================================
    # EXECUTION ERRORS
    # ========================================================================
    COMPUTE_FAILED = "COMPUTE_FAILED"  # Engine raised
    WORKER_TIMEOUT = "WORKER_TIMEOUT"  # Isolation deadline exceeded
    WORKER_CRASHED = "WORKER_CRASHED"  # Worker died without reporting

    # ========================================================================
    # INFRASTRUCTURE ERRORS (HTTP 500/503)
    # ========================================================================
    QUEUE_UNAVAILABLE = "QUEUE_UNAVAILABLE"  # Publish not confirmed
    QUEUE_TOPOLOGY_ERROR = "QUEUE_TOPOLOGY_ERROR"  # Declare/bind failed
    STORAGE_ERROR = "STORAGE_ERROR"  # Object store failure

    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"  # Unclassified exception


class ErrorClassification(str, Enum):
    """
    Error classification for resubmission decisions.

    The orchestrator itself never retries; this tells operators and
    callers whether resubmitting could succeed.
    """

    PERMANENT = "PERMANENT"  # Deterministic, resubmitting will fail again
    TRANSIENT = "TRANSIENT"  # Infrastructure hiccup, resubmission may work


_ERROR_CLASSIFICATION: Dict[ErrorCode, ErrorClassification] = {
    ErrorCode.VALIDATION_ERROR: ErrorClassification.PERMANENT,
    ErrorCode.EMPTY_DECOMPOSITION: ErrorClassification.PERMANENT,
    ErrorCode.JOB_NOT_FOUND: ErrorClassification.PERMANENT,
    ErrorCode.MALFORMED_MESSAGE: ErrorClassification.PERMANENT,
    ErrorCode.COMPUTE_FAILED: ErrorClassification.PERMANENT,
    ErrorCode.WORKER_CRASHED: ErrorClassification.PERMANENT,

    ErrorCode.WORKER_TIMEOUT: ErrorClassification.TRANSIENT,
    ErrorCode.QUEUE_UNAVAILABLE: ErrorClassification.TRANSIENT,
    ErrorCode.QUEUE_TOPOLOGY_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.STORAGE_ERROR: ErrorClassification.TRANSIENT,
    ErrorCode.UNEXPECTED_ERROR: ErrorClassification.TRANSIENT,
}

# Ordered: subclasses before their bases (JobNotFoundError is a StoreError)
_EXCEPTION_CODES = (
    (RequestValidationError, ErrorCode.VALIDATION_ERROR),
    (EmptyDecomposition, ErrorCode.EMPTY_DECOMPOSITION),
    (JobNotFoundError, ErrorCode.JOB_NOT_FOUND),
    (MalformedMessage, ErrorCode.MALFORMED_MESSAGE),
    (WorkerFailure, ErrorCode.COMPUTE_FAILED),
    (QueueUnavailable, ErrorCode.QUEUE_UNAVAILABLE),
    (QueueTopologyError, ErrorCode.QUEUE_TOPOLOGY_ERROR),
    (StoreError, ErrorCode.STORAGE_ERROR),
)


def is_retryable(error_code: ErrorCode) -> bool:
    """
    Determine if resubmitting after this error could succeed.

    Example:
        >>> is_retryable(ErrorCode.EMPTY_DECOMPOSITION)
        False
        >>> is_retryable(ErrorCode.QUEUE_UNAVAILABLE)
        True
    """
    classification = _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)
    return classification != ErrorClassification.PERMANENT


def get_error_classification(error_code: ErrorCode) -> ErrorClassification:
    """Get the classification for an error code."""
    return _ERROR_CLASSIFICATION.get(error_code, ErrorClassification.TRANSIENT)


def get_http_status_code(error_code: ErrorCode) -> int:
    """
    Get the appropriate HTTP status code for an error code.

    Example:
        >>> get_http_status_code(ErrorCode.JOB_NOT_FOUND)
        404
    """
    if error_code == ErrorCode.JOB_NOT_FOUND:
        return 404

    if error_code in {
        ErrorCode.VALIDATION_ERROR,
        ErrorCode.EMPTY_DECOMPOSITION,
        ErrorCode.MALFORMED_MESSAGE,
    }:
        return 400

    if error_code in {
        ErrorCode.QUEUE_UNAVAILABLE,
        ErrorCode.QUEUE_TOPOLOGY_ERROR,
        ErrorCode.STORAGE_ERROR,
    }:
        return 503

    return 500


def error_code_for(error: BaseException) -> ErrorCode:
    """
    Map an exception to its ErrorCode.

    WorkerFailure carries its own code (timeout/crash/compute) when set.
    """
    if isinstance(error, WorkerFailure) and error.error_code:
        try:
            return ErrorCode(error.error_code)
        except ValueError:
            return ErrorCode.COMPUTE_FAILED

    for exc_type, code in _EXCEPTION_CODES:
        if isinstance(error, exc_type):
            return code
    return ErrorCode.UNEXPECTED_ERROR


def create_error_response(
    error_code: ErrorCode,
    message: str,
    **kwargs: Any
) -> Dict[str, Any]:
    """
    Create a standardized error response dictionary.

    Example:
        >>> create_error_response(
        ...     ErrorCode.EMPTY_DECOMPOSITION,
        ...     "no sequences extracted",
        ... )
        {
            "success": False,
            "error": "EMPTY_DECOMPOSITION",
            "error_type": "RequestRejected",
            "message": "no sequences extracted",
            "retryable": False,
            "http_status": 400
        }
    """
    response = {
        "success": False,
        "error": error_code.value,
        "error_type": kwargs.pop("error_type", "RequestRejected"),
        "message": message,
        "retryable": is_retryable(error_code),
        "http_status": get_http_status_code(error_code),
        **kwargs
    }

    return response
