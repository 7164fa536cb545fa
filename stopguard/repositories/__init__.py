"""
Repositories Module

Position Store interface and its implementations.
"""

from stopguard.repositories.base import PositionStore
from stopguard.repositories.memory import InMemoryPositionStore
from stopguard.repositories.managed_position_repository import ManagedPositionRepository

__all__ = [
    "PositionStore",
    "InMemoryPositionStore",
    "ManagedPositionRepository",
]
