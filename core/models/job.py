# ============================================================================
# CORE MODELS - JOB METADATA
# ============================================================================
# STATUS: Core data models - job lifecycle record
# PURPOSE: Pydantic models for job status records in the object store
# EXPORTS: JobStats, JobMetadata, INTERNAL_STATS_FIELDS
# DEPENDENCIES: pydantic, core.models.enums
# ============================================================================

"""
Job Metadata Models - Persistence Boundary

JobMetadata is the lifecycle record for one job, stored as one JSON
document per job id. It is created by the producer (pending), mutated by
the dispatcher while the job executes, and read by the stats service.

All timestamps are epoch milliseconds; derived durations are milliseconds.
"""

from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .enums import JobKind, JobStatus

# Raw engine timings that never leave the service layer
INTERNAL_STATS_FIELDS = frozenset({"total_seconds", "report_write_time_ms"})


class JobStats(BaseModel):
    """
    Timing and result summary for one job.

    Timing fields are filled by the dispatcher; result fields are lifted
    from the engine's result. Engines may report camelCase keys.
    """

    model_config = ConfigDict(populate_by_name=True)

    # Timing (dispatcher)
    started_at: Optional[int] = Field(default=None, validation_alias=AliasChoices("started_at", "startedAt"))
    ended_at: Optional[int] = Field(default=None, validation_alias=AliasChoices("ended_at", "endedAt"))
    execution_time: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("execution_time", "executionTime"),
        description="ended_at - started_at (ms)",
    )
    idle_time: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("idle_time", "idleTime"),
        description="received_at - sent_at (ms)",
    )

    # Timing (engine reported)
    analysis_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("analysis_seconds", "analysisSeconds"),
    )
    total_seconds: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("total_seconds", "totalSeconds"),
    )
    report_write_time_ms: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("report_write_time_ms", "reportWriteTimeMs"),
    )

    # Results
    probability: Optional[float] = None
    products: Optional[int] = None

    # Adaptive quantification results
    original_products: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("original_products", "originalProducts"),
    )
    exact_probability: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("exact_probability", "exactProbability"),
    )
    approximate_probability: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("approximate_probability", "approximateProbability"),
    )
    relative_error: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("relative_error", "relativeError"),
    )


class JobMetadata(BaseModel):
    """
    Lifecycle record of a single job.

    Batch parents carry child_job_ids in decomposition order; children
    carry parent_job_id and their 1-based sequence_index.
    """

    job_id: str = Field(..., min_length=1, max_length=256)
    kind: JobKind = Field(default=JobKind.SINGLE)
    status: JobStatus = Field(default=JobStatus.PENDING)
    queue: Optional[str] = Field(default=None, description="Queue the job was published to")

    # Batch relationship
    parent_job_id: Optional[str] = None
    sequence_index: Optional[int] = Field(default=None, ge=1)
    child_job_ids: List[str] = Field(default_factory=list)

    # Lifecycle timestamps (epoch ms)
    sent_at: Optional[int] = None
    received_at: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    # Submitted request (inputs container)
    input_id: Optional[str] = None

    # Outcome
    stats: Optional[JobStats] = None
    output_job_id: Optional[str] = Field(default=None, description="Id of the stored output artifact")
    aggregated_output_job_id: Optional[str] = Field(
        default=None, description="Id of a batch's consolidated output artifact"
    )
    error_details: Optional[str] = None
    error_code: Optional[str] = None
    diagnostic: Optional[str] = None

    @property
    def is_batch_parent(self) -> bool:
        return self.kind == JobKind.BATCH

    def to_storage(self) -> Dict[str, Any]:
        """JSON-ready dict for the object store."""
        return self.model_dump(mode="json", exclude_none=True)
