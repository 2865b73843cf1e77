"""
Transform component - tracking frames in, avatar parameters out.
"""

from .component import (
    COUNTER_NAMES,
    TransformationService,
    determine_status,
    run_transform,
)
from .models import ServiceStats, ServiceStatus, TransformInput, TransformOutput
from .ports import RuleRepositoryPort

__all__ = [
    # Component entry points
    "run_transform",
    "determine_status",
    # Service
    "TransformationService",
    # Models
    "TransformInput",
    "TransformOutput",
    "ServiceStats",
    "ServiceStatus",
    # Ports
    "RuleRepositoryPort",
    # Constants
    "COUNTER_NAMES",
]
