"""
Core Orchestration Components.

Contains the fundamental building blocks shared by the producer, the
queue listener and the stats service.

Structure:
    models/: Pure data structures (no business logic)
    logic/: Business logic separated from models
    job_id: Parent/child job id derivation
    errors: Error codes and rejection responses
"""

from . import models
from . import logic

__all__ = [
    'models',
    'logic',
]
