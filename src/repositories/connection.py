"""
MongoDB Connection Management
Motor client with connection pooling and lifecycle management.
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from loguru import logger

from src.config import Settings


class DatabaseManager:
    """
    MongoDB client manager with async Motor.
    Handles connection lifecycle, pooling, and graceful shutdown.

    One instance is created per application lifespan and passed to the store.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client: Optional[AsyncIOMotorClient] = None
        self._database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """
        Initialize MongoDB connection with configured pool settings.
        Idempotent - safe to call multiple times.
        """
        if self._client is not None:
            logger.debug("Reusing existing MongoDB client")
            return

        settings = self.settings
        logger.bind(
            database=settings.mongodb_database,
            max_pool_size=settings.mongodb_max_pool_size,
            environment=settings.environment,
        ).info(f"Connecting to MongoDB at {settings.mongodb_uri}")

        self._client = AsyncIOMotorClient(
            settings.mongodb_uri,
            maxPoolSize=settings.mongodb_max_pool_size,
            minPoolSize=settings.mongodb_min_pool_size,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
        )
        self._database = self._client[settings.mongodb_database]

    async def disconnect(self) -> None:
        """
        Close MongoDB connection and cleanup resources.
        Idempotent - safe to call multiple times.
        """
        if self._client is None:
            logger.debug("MongoDB client already disconnected")
            return

        logger.info("Closing MongoDB connection")
        self._client.close()
        self._client = None
        self._database = None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance.
        Raises RuntimeError if not connected.
        """
        if self._database is None:
            raise RuntimeError(
                "Database not connected. Call await db_manager.connect() first."
            )
        return self._database

    async def ping(self) -> bool:
        """True when the server answers a ping."""
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    async def create_indexes(self) -> None:
        """
        Create the indexes the analysis store relies on.
        Should be called during application startup.
        """
        collection = self.database[self.settings.analyses_table_name]

        logger.info("Creating MongoDB indexes")

        # The store's terminal-status guard depends on this index being unique
        await collection.create_index("analysisId", unique=True, name="idx_analysis_id_unique")
        await collection.create_index(
            [("kind", 1), ("createdAt", -1)],
            name="idx_kind_created"
        )

        logger.info("MongoDB indexes created successfully")
