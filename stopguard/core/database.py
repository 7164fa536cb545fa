"""
MongoDB database connection using Motor (async driver).

Provides database instance and connection management.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from stopguard.config.settings import get_settings

logger = logging.getLogger(__name__)

# Global database client and database instances
_client: AsyncIOMotorClient | None = None
_database: AsyncIOMotorDatabase | None = None


async def connect_to_mongodb() -> AsyncIOMotorDatabase:
    """
    Connect to MongoDB database.

    Creates a connection pool and tests the connection.

    Returns:
        AsyncIOMotorDatabase: Connected database

    Raises:
        RuntimeError: If MONGODB_URL is not configured
        Exception: If connection to MongoDB fails
    """
    global _client, _database

    if _database is not None:
        return _database

    settings = get_settings()
    if not settings.MONGODB_URL:
        raise RuntimeError("MONGODB_URL is not configured")

    try:
        logger.info("Connecting to MongoDB database %s", settings.MONGODB_DB_NAME)

        _client = AsyncIOMotorClient(
            settings.MONGODB_URL,
            serverSelectionTimeoutMS=5000,
            maxPoolSize=10,
            minPoolSize=1,
        )
        _database = _client[settings.MONGODB_DB_NAME]

        await _client.admin.command("ping")

        logger.info("Successfully connected to MongoDB database: %s", settings.MONGODB_DB_NAME)
        return _database

    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {str(e)}")
        _client = None
        _database = None
        raise


async def close_mongodb_connection() -> None:
    """Close MongoDB database connection."""
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
