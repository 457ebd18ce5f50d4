"""
Service Layer - job submission and read-side views.

    producer.py                Record-then-publish submission with rollback
    decomposition.py           Default request -> sequence sub-request splits
    stats_service.py           Status, output and normalized stats views
    quantification_service.py  Caller-facing facade over both
"""

from .decomposition import (
    AdaptiveDecomposer,
    Decomposer,
    clamp_cut_off,
    decompose_adaptive,
    decompose_by_targets,
)
from .producer import Producer, coerce_request
from .stats_service import JobStatsService
from .quantification_service import QuantificationService

__all__ = [
    'AdaptiveDecomposer',
    'Decomposer',
    'clamp_cut_off',
    'decompose_adaptive',
    'decompose_by_targets',
    'Producer',
    'coerce_request',
    'JobStatsService',
    'QuantificationService',
]
