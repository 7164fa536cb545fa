"""
Managed Position Repository

MongoDB-backed PositionStore.
"""

from typing import Optional, List, Dict, Any, Iterable
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from motor.motor_asyncio import AsyncIOMotorDatabase

from stopguard.domain.models.managed_position import ManagedPosition, ManagedPositionStatus
from stopguard.repositories.base import PositionStore
from stopguard.repositories.mongo import MongoRepository
from stopguard.shared.exceptions import NotFoundError
from stopguard.core.logger import get_logger

logger = get_logger(__name__)

# Fields stored as float in MongoDB and restored as Decimal
DECIMAL_FIELDS = (
    "qty",
    "entry_price",
    "stop_loss_pct",
    "take_profit_pct",
    "stop_loss_price",
    "take_profit_price",
    "current_price",
    "unrealized_pl",
    "unrealized_plpc",
    "closed_price",
    "realized_pl",
)


def convert_decimals(obj: Any) -> Any:
    """Convert Decimal to float for MongoDB (MongoDB doesn't support Decimal)"""
    if isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, dict):
        return {k: convert_decimals(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [convert_decimals(item) for item in obj]
    return obj


class ManagedPositionRepository(MongoRepository, PositionStore):
    """
    Repository for managed positions.
    
    Usage:
        repo = ManagedPositionRepository(db)
        await repo.ensure_indexes()
        position = await repo.create(position)
    """
    
    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "managed_positions"):
        super().__init__(db, collection_name)
    
    async def ensure_indexes(self) -> None:
        """Create indexes used by the monitoring and listing queries."""
        await self.collection.create_index("status")
        await self.collection.create_index([("status", 1), ("created_at", -1)])
        await self.collection.create_index([("symbol", 1), ("created_at", -1)])
        logger.info(f"Indexes verified for {self.db.name}.{self.collection_name}")
    
    def _to_document(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Domain values -> MongoDB values (enums as strings, Decimal as float)."""
        document = {}
        for key, value in data.items():
            if isinstance(value, Enum):
                value = value.value
            document[key] = convert_decimals(value)
        return document
    
    def _from_document(self, document: Dict[str, Any]) -> ManagedPosition:
        """MongoDB document -> ManagedPosition."""
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        
        for field in DECIMAL_FIELDS:
            value = data.get(field)
            if isinstance(value, (int, float)):
                data[field] = Decimal(str(value))
        
        for field in ("created_at", "updated_at", "closed_at"):
            value = data.get(field)
            # Mongo returns naive UTC datetimes
            if isinstance(value, datetime) and value.tzinfo is None:
                data[field] = value.replace(tzinfo=timezone.utc)
        
        return ManagedPosition.model_validate(data)
    
    async def create(self, position: ManagedPosition) -> ManagedPosition:
        data = position.model_dump(exclude={"id"})
        inserted_id = await self.insert_one(self._to_document(data))
        return position.model_copy(update={"id": str(inserted_id)})
    
    async def get(self, position_id: str) -> Optional[ManagedPosition]:
        object_id = self.to_object_id(position_id)
        if object_id is None:
            return None
        
        document = await self.find_one({"_id": object_id})
        return self._from_document(document) if document else None
    
    async def list_by_status(
        self,
        statuses: Iterable[ManagedPositionStatus],
        symbol: Optional[str] = None,
        limit: int = 0
    ) -> List[ManagedPosition]:
        filter: Dict[str, Any] = {
            "status": {"$in": [ManagedPositionStatus(s).value for s in statuses]}
        }
        if symbol:
            filter["symbol"] = symbol
        
        documents = await self.find(
            filter=filter,
            limit=limit,
            sort=[("created_at", -1)]
        )
        return [self._from_document(doc) for doc in documents]
    
    async def update(self, position_id: str, patch: Dict[str, Any]) -> ManagedPosition:
        object_id = self.to_object_id(position_id)
        if object_id is None:
            raise NotFoundError(f"Managed position {position_id} not found")
        
        values = self._to_document(patch)
        values["updated_at"] = datetime.now(timezone.utc)
        
        document = await self.find_one_and_set({"_id": object_id}, values)
        if document is None:
            raise NotFoundError(f"Managed position {position_id} not found")
        
        return self._from_document(document)
