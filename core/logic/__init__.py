"""
Core Business Logic Package.

Contains business logic that operates on pure data models.
Separated from models to maintain clean architecture.

Exports:
    State transitions: can_job_transition, is_job_terminal, rollup_status
    Calculations: build_job_stats, normalize_stats, now_ms
"""

# State transitions
from .transitions import (
    can_job_transition,
    get_job_terminal_states,
    get_job_active_states,
    is_job_terminal,
    rollup_status,
)

# Calculations
from .calculations import (
    now_ms,
    build_job_stats,
    normalize_stats,
    extract_result_stats,
)

__all__ = [
    # State transitions
    'can_job_transition',
    'get_job_terminal_states',
    'get_job_active_states',
    'is_job_terminal',
    'rollup_status',

    # Calculations
    'now_ms',
    'build_job_stats',
    'normalize_stats',
    'extract_result_stats',
]
