"""
Base Mongo Repository

Common motor CRUD helpers shared by MongoDB-backed repositories.
"""

from typing import Optional, List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from bson import ObjectId
from bson.errors import InvalidId


class MongoRepository:
    """
    Thin wrapper over one motor collection.
    
    Subclasses convert between documents and domain models.
    """
    
    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str):
        """
        Initialize repository.
        
        Args:
            db: MongoDB database instance
            collection_name: Name of the collection
        """
        self.db = db
        self.collection_name = collection_name
        self.collection = db[collection_name]
    
    @staticmethod
    def to_object_id(document_id: str) -> Optional[ObjectId]:
        """Parse an id string, returning None for malformed ids."""
        if isinstance(document_id, ObjectId):
            return document_id
        try:
            return ObjectId(document_id)
        except (InvalidId, TypeError):
            return None
    
    async def find_one(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Find a single document."""
        return await self.collection.find_one(filter)
    
    async def find(
        self,
        filter: Dict[str, Any],
        limit: int = 0,
        sort: Optional[List[tuple]] = None
    ) -> List[Dict[str, Any]]:
        """
        Find multiple documents.
        
        Args:
            filter: MongoDB filter dictionary
            limit: Maximum number of documents to return (0 = all)
            sort: List of (field, direction) tuples for sorting
            
        Returns:
            List of document dicts
        """
        cursor = self.collection.find(filter)
        
        if sort:
            cursor = cursor.sort(sort)
        
        if limit > 0:
            cursor = cursor.limit(limit)
        
        return await cursor.to_list(length=limit if limit > 0 else None)
    
    async def insert_one(self, document: Dict[str, Any]) -> ObjectId:
        """Insert a single document and return its id."""
        result = await self.collection.insert_one(document)
        return result.inserted_id
    
    async def find_one_and_set(
        self,
        filter: Dict[str, Any],
        values: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply a $set and return the document after the update."""
        return await self.collection.find_one_and_update(
            filter,
            {"$set": values},
            return_document=ReturnDocument.AFTER
        )
