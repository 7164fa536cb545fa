"""
Position Services

Lifecycle management and monitoring of managed positions.
"""

from stopguard.services.position_locks import PositionLockRegistry
from stopguard.services.position_manager import PositionManagerService
from stopguard.services.position_monitor import PositionMonitorService

__all__ = [
    "PositionLockRegistry",
    "PositionManagerService",
    "PositionMonitorService",
]
