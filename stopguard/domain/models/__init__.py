"""
Domain Models

Pure Pydantic domain models with no database dependencies.
"""

from stopguard.shared.models import DomainModel
from stopguard.domain.models.managed_position import (
    ACTIVE_STATUSES,
    CloseReason,
    ManagedPosition,
    ManagedPositionStatus,
    PositionSide,
    calculate_thresholds,
)

__all__ = [
    "DomainModel",
    "ACTIVE_STATUSES",
    "CloseReason",
    "ManagedPosition",
    "ManagedPositionStatus",
    "PositionSide",
    "calculate_thresholds",
]
