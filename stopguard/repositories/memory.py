"""
In-Memory Position Store

Process-local PositionStore used for paper runs and local development
when no MongoDB URL is configured.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Iterable

from stopguard.domain.models.managed_position import ManagedPosition, ManagedPositionStatus
from stopguard.repositories.base import PositionStore
from stopguard.shared.exceptions import NotFoundError


class InMemoryPositionStore(PositionStore):
    """Dict-backed store. Returns copies so callers never alias stored records."""
    
    def __init__(self):
        self._records: Dict[str, ManagedPosition] = {}
    
    async def create(self, position: ManagedPosition) -> ManagedPosition:
        position_id = position.id or uuid.uuid4().hex
        stored = position.model_copy(update={"id": position_id}, deep=True)
        self._records[position_id] = stored
        return stored.model_copy(deep=True)
    
    async def get(self, position_id: str) -> Optional[ManagedPosition]:
        position = self._records.get(position_id)
        return position.model_copy(deep=True) if position else None
    
    async def list_by_status(
        self,
        statuses: Iterable[ManagedPositionStatus],
        symbol: Optional[str] = None,
        limit: int = 0
    ) -> List[ManagedPosition]:
        wanted = {ManagedPositionStatus(s) for s in statuses}
        matches = [
            p for p in self._records.values()
            if p.status in wanted and (symbol is None or p.symbol == symbol)
        ]
        matches.sort(key=lambda p: p.created_at, reverse=True)
        if limit > 0:
            matches = matches[:limit]
        return [p.model_copy(deep=True) for p in matches]
    
    async def update(self, position_id: str, patch: Dict[str, Any]) -> ManagedPosition:
        current = self._records.get(position_id)
        if current is None:
            raise NotFoundError(f"Managed position {position_id} not found")
        
        data = current.model_dump()
        data.update(patch)
        data["id"] = position_id
        data["updated_at"] = datetime.now(timezone.utc)
        
        updated = ManagedPosition.model_validate(data)
        self._records[position_id] = updated
        return updated.model_copy(deep=True)
