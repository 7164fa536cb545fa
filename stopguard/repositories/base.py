"""
Position Store Interface

Abstract base class for managed-position persistence.
Implementations: ManagedPositionRepository (MongoDB), InMemoryPositionStore.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Iterable

from stopguard.domain.models.managed_position import ManagedPosition, ManagedPositionStatus


class PositionStore(ABC):
    """
    Durable keyed storage for managed-position records.
    
    Usage:
        position = await store.create(position)
        position = await store.get(position.id)
        open_positions = await store.list_by_status(ACTIVE_STATUSES)
        position = await store.update(position.id, {"current_price": Decimal("151")})
    """
    
    @abstractmethod
    async def create(self, position: ManagedPosition) -> ManagedPosition:
        """
        Insert a new record.
        
        Returns:
            The stored position with its id assigned
        """
    
    @abstractmethod
    async def get(self, position_id: str) -> Optional[ManagedPosition]:
        """Get a record by id, or None if absent."""
    
    @abstractmethod
    async def list_by_status(
        self,
        statuses: Iterable[ManagedPositionStatus],
        symbol: Optional[str] = None,
        limit: int = 0
    ) -> List[ManagedPosition]:
        """
        Records whose status is in `statuses`, newest first.
        
        Args:
            statuses: Status filter
            symbol: Optional symbol filter
            limit: Maximum records to return (0 = no limit)
        """
    
    @abstractmethod
    async def update(self, position_id: str, patch: Dict[str, Any]) -> ManagedPosition:
        """
        Apply a partial update and stamp updated_at.
        
        Returns:
            The updated position
            
        Raises:
            NotFoundError: If the record does not exist
        """
    
    async def list(
        self,
        status: Optional[ManagedPositionStatus] = None,
        symbol: Optional[str] = None,
        limit: int = 100
    ) -> List[ManagedPosition]:
        """All records, optionally filtered by a single status and symbol."""
        statuses = [status] if status else list(ManagedPositionStatus)
        return await self.list_by_status(statuses, symbol=symbol, limit=limit)
