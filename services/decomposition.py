"""
Default Request Decompositions.

Split one quantification request into per-sequence sub-requests. The
producer takes these as injected collaborators; deployments with a real
sequence extractor pass their own.

Exports:
    Decomposer: Plain decomposition signature
    AdaptiveDecomposer: Adaptive decomposition signature
    decompose_by_targets: One sub-request per request.targets entry
    decompose_adaptive: Seeded, cut-off-clamped sub-requests from sequence_estimates
"""

from typing import Callable, List, Optional

from core.models.request import ConvergenceCriteria, QuantifyRequest

Decomposer = Callable[[QuantifyRequest], List[QuantifyRequest]]
AdaptiveDecomposer = Callable[[QuantifyRequest, ConvergenceCriteria], List[QuantifyRequest]]

SEQUENCE_SETTING = "sequence"
CUT_OFF_SETTING = "cut_off"
CONVERGENCE_SETTING = "convergence"


def _sub_request(request: QuantifyRequest, **settings) -> QuantifyRequest:
    # Children get their ids from the producer, never from the parent request
    return request.model_copy(
        update={
            "settings": {**request.settings, **settings},
            "job_id": None,
            "targets": None,
            "sequence_estimates": None,
        }
    )


def decompose_by_targets(request: QuantifyRequest) -> List[QuantifyRequest]:
    """
    One sub-request per target sequence, in the order given.

    Each sub-request's settings gain "sequence": <target>.
    """
    return [_sub_request(request, **{SEQUENCE_SETTING: target}) for target in request.targets or []]


def clamp_cut_off(value: float, criteria: ConvergenceCriteria) -> float:
    """Clamp a cut-off into [min_cut_off, max_cut_off] (unset bounds ignored)."""
    if criteria.min_cut_off is not None:
        value = max(value, criteria.min_cut_off)
    if criteria.max_cut_off is not None:
        value = min(value, criteria.max_cut_off)
    return value


def decompose_adaptive(request: QuantifyRequest, criteria: ConvergenceCriteria) -> List[QuantifyRequest]:
    """
    Sub-requests for adaptive quantification.

    Sequences come from request.sequence_estimates. Sequences whose seed
    estimate is below min_cut_off are dropped (they cannot matter at the
    coarsest truncation). The rest are ordered by estimate, largest
    first, so the dominant sequences get workers first.

    Each sub-request's settings carry:
        sequence      sequence id
        cut_off       estimate * relative_error_tolerance (or the estimate),
                      clamped into [min_cut_off, max_cut_off]
        convergence   the criteria, for the engine's refinement loop

    Returns an empty list when nothing survives; the producer turns that
    into EmptyDecomposition.
    """
    estimates = request.sequence_estimates or {}

    selected = [
        (sequence, estimate) for sequence, estimate in estimates.items()
        if criteria.min_cut_off is None or estimate >= criteria.min_cut_off
    ]
    selected.sort(key=lambda item: item[1], reverse=True)

    tolerance: Optional[float] = criteria.relative_error_tolerance
    convergence = criteria.model_dump(mode="json", exclude_none=True)

    return [
        _sub_request(
            request,
            **{
                SEQUENCE_SETTING: sequence,
                CUT_OFF_SETTING: clamp_cut_off(estimate * tolerance if tolerance else estimate, criteria),
                CONVERGENCE_SETTING: convergence,
            }
        )
        for sequence, estimate in selected
    ]
