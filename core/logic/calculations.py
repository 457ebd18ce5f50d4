# ============================================================================
# JOB STATS CALCULATIONS
# ============================================================================
# STATUS: Core - Pure calculation functions
# PURPOSE: Derived timings, engine result extraction, stats normalization
# ============================================================================
"""
Job Stats Calculations.

Contains calculation logic separated from data models.
All functions except now_ms are pure and operate on model data.

Exports:
    now_ms: Current time as epoch milliseconds
    extract_result_stats: Lift known stats fields out of an engine result
    build_job_stats: Combine dispatcher timings with engine stats
    normalize_stats: Caller-facing stats dict (analysis_seconds resolved)
"""

import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..models.job import INTERNAL_STATS_FIELDS, JobStats
from ..models.results import WorkerOutcome

# Engine result keys (either naming) mapped to JobStats fields
_RESULT_STATS_KEYS = {
    "probability": "probability",
    "products": "products",
    "original_products": "original_products",
    "originalProducts": "original_products",
    "exact_probability": "exact_probability",
    "exactProbability": "exact_probability",
    "approximate_probability": "approximate_probability",
    "approximateProbability": "approximate_probability",
    "relative_error": "relative_error",
    "relativeError": "relative_error",
    "analysis_seconds": "analysis_seconds",
    "analysisSeconds": "analysis_seconds",
    "total_seconds": "total_seconds",
    "totalSeconds": "total_seconds",
    "report_write_time_ms": "report_write_time_ms",
    "reportWriteTimeMs": "report_write_time_ms",
}


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def extract_result_stats(
    result: Optional[Dict[str, Any]],
    dropped: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Lift recognised stats fields out of an engine result.

    Fields are read from the top level of the result, then from a nested
    "stats" mapping if the engine reports one (nested values win).
    Unknown keys are ignored. Each field is validated on its own; a value
    that does not fit its JobStats type is left out (the result itself is
    opaque, so e.g. "products" may be a list of cut sets).

    Args:
        result: Engine result mapping (may be None)
        dropped: Optional dict that receives the values left out, by field

    Returns:
        Dict keyed by JobStats field names, every value already coerced
    """
    if not result:
        return {}

    candidates: Dict[str, Any] = {}
    sources = [result]
    nested = result.get("stats")
    if isinstance(nested, dict):
        sources.append(nested)

    for source in sources:
        for key, value in source.items():
            field = _RESULT_STATS_KEYS.get(key)
            if field is not None and value is not None:
                candidates[field] = value

    extracted: Dict[str, Any] = {}
    for field, value in candidates.items():
        try:
            extracted[field] = getattr(JobStats.model_validate({field: value}), field)
        except ValidationError:
            if dropped is not None:
                dropped[field] = value
    return extracted


def build_job_stats(
    outcome: WorkerOutcome,
    sent_at: Optional[int],
    received_at: Optional[int],
    dropped: Optional[Dict[str, Any]] = None,
) -> JobStats:
    """
    Build the stats recorded on a finished job.

    execution_time = ended_at - started_at and idle_time = received_at -
    sent_at, both in milliseconds. A derived value is omitted when either
    of its inputs is missing.

    Args:
        outcome: Worker outcome (success or failure)
        sent_at: Enqueue time from the message
        received_at: Dispatcher pickup time
        dropped: Passed to extract_result_stats

    Returns:
        JobStats with timings and any engine-reported stats
    """
    execution_time = None
    if outcome.started_at is not None and outcome.ended_at is not None:
        execution_time = outcome.ended_at - outcome.started_at

    idle_time = None
    if sent_at is not None and received_at is not None:
        idle_time = received_at - sent_at

    return JobStats(
        started_at=outcome.started_at,
        ended_at=outcome.ended_at,
        execution_time=execution_time,
        idle_time=idle_time,
        **extract_result_stats(outcome.result if outcome.success else None, dropped),
    )


def normalize_stats(stats: Optional[JobStats]) -> Optional[Dict[str, Any]]:
    """
    Caller-facing view of a job's stats.

    analysis_seconds resolves to the engine-reported value, else the
    engine's total_seconds, else execution_time / 1000. Internal-only
    fields are dropped.

    Args:
        stats: Stored stats (may be None)

    Returns:
        Normalized stats dict, or None when no stats are recorded
    """
    if stats is None:
        return None

    analysis_seconds = stats.analysis_seconds
    if analysis_seconds is None:
        analysis_seconds = stats.total_seconds
    if analysis_seconds is None and stats.execution_time is not None:
        analysis_seconds = stats.execution_time / 1000

    normalized = stats.model_dump(exclude=set(INTERNAL_STATS_FIELDS), exclude_none=True)
    if analysis_seconds is not None:
        normalized["analysis_seconds"] = analysis_seconds
    return normalized
