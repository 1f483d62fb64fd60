"""
MongoDB persistence gateway.
Owns the shared client handle, index creation and collection access.
"""

from typing import Dict, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import ConnectionFailure

logger = structlog.get_logger(__name__)

USERS = "users"
BOOKS = "books"
ORDERS = "orders"
REVIEWS = "reviews"
SESSIONS = "sessions"


class MongoDBManager:
    """
    Async MongoDB manager shared by every request.
    Connected once at startup and closed at shutdown.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB and make sure indexes exist."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command("ping")
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """
        Create the indexes the API relies on.
        Unique indexes are the authority for email and review-pair uniqueness.
        """
        try:
            await self.collection(USERS).create_index("email", unique=True)

            await self.collection(REVIEWS).create_index(
                [("userId", ASCENDING), ("bookId", ASCENDING)], unique=True
            )
            await self.collection(REVIEWS).create_index("bookId")

            await self.collection(ORDERS).create_index("userId")
            await self.collection(ORDERS).create_index("status")

            # Expired sessions are removed by the server
            await self.collection(SESSIONS).create_index("expiresAt", expireAfterSeconds=0)

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    def collection(self, name: str) -> AsyncIOMotorCollection:
        """Return a collection handle, failing loudly if not connected."""
        if self.database is None:
            raise RuntimeError("Database is not connected")
        return self.database[name]

    @property
    def users(self) -> AsyncIOMotorCollection:
        return self.collection(USERS)

    @property
    def books(self) -> AsyncIOMotorCollection:
        return self.collection(BOOKS)

    @property
    def orders(self) -> AsyncIOMotorCollection:
        return self.collection(ORDERS)

    @property
    def reviews(self) -> AsyncIOMotorCollection:
        return self.collection(REVIEWS)

    @property
    def sessions(self) -> AsyncIOMotorCollection:
        return self.collection(SESSIONS)

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.client.admin.command("ping")
            counts = {}
            for name in (USERS, BOOKS, ORDERS, REVIEWS):
                counts[f"{name}_count"] = await self.collection(name).count_documents({})

            return {"status": "healthy", **counts}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
