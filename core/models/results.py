"""
Worker Execution Models.

Input and output of one isolated engine invocation.

Exports:
    WorkerTask: What crosses into the isolation boundary
    WorkerOutcome: Structured result coming back out (never an exception)
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from core.errors import ErrorCode


class WorkerTask(BaseModel):
    """
    Unit of work handed to an isolation boundary.

    engine_ref is a registry name or "package.module:attribute"; it is
    resolved inside the boundary so subprocess workers import it themselves.
    """

    job_id: str
    engine_ref: str
    settings: Dict[str, Any] = Field(default_factory=dict)
    model: Any = None


class WorkerOutcome(BaseModel):
    """
    Success/failure of one engine invocation.

    started_at/ended_at are epoch milliseconds and are set even on
    failure so partial stats can be recorded.
    """

    success: bool
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    diagnostic: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    started_at: Optional[int] = None
    ended_at: Optional[int] = None

    @classmethod
    def succeeded(cls, result: Dict[str, Any], started_at: int, ended_at: int) -> "WorkerOutcome":
        return cls(success=True, result=result, started_at=started_at, ended_at=ended_at)

    @classmethod
    def failed(
        cls,
        error_code: ErrorCode,
        error: str,
        started_at: int,
        ended_at: int,
        diagnostic: Optional[str] = None,
    ) -> "WorkerOutcome":
        return cls(
            success=False,
            error=error,
            diagnostic=diagnostic,
            error_code=error_code,
            started_at=started_at,
            ended_at=ended_at,
        )
