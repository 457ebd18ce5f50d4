"""
Quantification Request Models.

What callers submit and what travels on the queue.

Exports:
    ConvergenceCriteria: Stop conditions for adaptive refinement
    QuantifyRequest: Caller-submitted quantification request
    QuantJobMessage: Queue message body (request tagged with its job id)
"""

from typing import Any, Dict, List, Optional
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from ..job_id import validate_external_job_id
from .enums import InitialEstimator


class ConvergenceCriteria(BaseModel):
    """
    Parameters governing when adaptive refinement may stop.

    All fields optional - absent fields fall back to engine defaults.
    camelCase names are accepted for payloads coming from JS clients.
    """

    model_config = ConfigDict(populate_by_name=True)

    relative_error_tolerance: Optional[float] = Field(
        default=None, ge=0.0, le=1.0,
        validation_alias=AliasChoices("relative_error_tolerance", "relativeErrorTolerance"),
    )
    min_cut_off: Optional[float] = Field(
        default=None, ge=0.0, le=1.0,
        validation_alias=AliasChoices("min_cut_off", "minCutOff"),
        description="Minimum truncation probability to evaluate",
    )
    max_cut_off: Optional[float] = Field(
        default=None, ge=0.0, le=1.0,
        validation_alias=AliasChoices("max_cut_off", "maxCutOff"),
        description="Maximum truncation probability to evaluate",
    )
    consecutive_variation_threshold: Optional[float] = Field(
        default=None, ge=0.0, le=1.0,
        validation_alias=AliasChoices("consecutive_variation_threshold", "consecutiveVariationThreshold"),
        description="Stop if improvement between refinements is below this",
    )
    initial_estimator: Optional[InitialEstimator] = Field(
        default=None,
        validation_alias=AliasChoices("initial_estimator", "initialEstimator"),
    )

    @field_validator("initial_estimator", mode="before")
    @classmethod
    def normalize_estimator(cls, v):
        if v == "monteCarlo":
            return InitialEstimator.MONTE_CARLO
        return v

    @model_validator(mode="after")
    def check_cut_off_bounds(self) -> "ConvergenceCriteria":
        if (self.min_cut_off is not None and self.max_cut_off is not None
                and self.min_cut_off > self.max_cut_off):
            raise ValueError(
                f"min_cut_off ({self.min_cut_off}) must be <= max_cut_off ({self.max_cut_off})"
            )
        return self


class QuantifyRequest(BaseModel):
    """
    A quantification request.

    settings/model are opaque to the orchestrator and handed to the
    engine untouched. targets and sequence_estimates only feed the
    default decompositions.
    """

    model_config = ConfigDict(populate_by_name=True)

    settings: Dict[str, Any] = Field(default_factory=dict)
    model: Any = Field(..., description="Opaque model payload for the engine")

    job_id: Optional[str] = Field(
        default=None,
        max_length=128,
        validation_alias=AliasChoices("job_id", "jobId"),
        description="Externally supplied job id (must not contain the delimiter)",
    )
    targets: Optional[List[str]] = Field(
        default=None,
        description="Sequence identifiers for plain decomposition",
    )
    sequence_estimates: Optional[Dict[str, float]] = Field(
        default=None,
        validation_alias=AliasChoices("sequence_estimates", "sequenceEstimates"),
        description="Seed probability per sequence for adaptive decomposition",
    )
    convergence: Optional[ConvergenceCriteria] = None

    @field_validator("job_id")
    @classmethod
    def validate_job_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_external_job_id(v)


class QuantJobMessage(BaseModel):
    """
    Queue message body.

    One message per job; the request is tagged with the id the job
    was recorded under.
    """

    model_config = ConfigDict(extra="forbid")

    job_id: str = Field(..., min_length=1, max_length=256)
    parent_job_id: Optional[str] = Field(default=None, max_length=256)
    sequence_index: Optional[int] = Field(default=None, ge=1)
    request: QuantifyRequest
    sent_at: int = Field(..., ge=0, description="Enqueue time, epoch milliseconds")
