"""
Analysis Record Store
Persists analysis records keyed by analysisId.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from src.models.analysis import AnalysisRecord, AnalysisStatus, TERMINAL_STATUSES
from src.repositories.connection import DatabaseManager
from src.utils.errors import PersistenceError


class AnalysisStore(ABC):
    """
    Key-value store for analysis records.

    save() is monotonic: once a record is completed or failed, later writes
    for the same analysisId are rejected and save() returns False.
    """

    backend: str = "abstract"

    @abstractmethod
    async def save(self, record: AnalysisRecord) -> bool:
        """Insert or replace a record. False when the stored one is terminal."""
        ...

    @abstractmethod
    async def get(self, analysis_id: str) -> Optional[AnalysisRecord]:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MongoAnalysisStore(AnalysisStore):
    """
    MongoDB-backed store, one document per analysisId.
    Requires the unique analysisId index created by DatabaseManager.create_indexes().
    """

    backend = "mongodb"

    def __init__(self, db_manager: DatabaseManager, collection_name: str = "analyses"):
        self.db_manager = db_manager
        self.collection_name = collection_name

    @property
    def collection(self) -> AsyncIOMotorCollection:
        database: AsyncIOMotorDatabase = self.db_manager.database
        return database[self.collection_name]

    async def save(self, record: AnalysisRecord) -> bool:
        document = record.to_document()
        guard = {
            "analysisId": record.analysis_id,
            "status": {"$nin": sorted(status.value for status in TERMINAL_STATUSES)},
        }

        try:
            await self.collection.replace_one(guard, document, upsert=True)
        except DuplicateKeyError:
            # Guard missed because the stored record is terminal; the upsert hit the unique index
            logger.warning(
                f"🔒 Refusing to overwrite terminal analysis {record.analysis_id} "
                f"with status {record.status}"
            )
            return False
        except PyMongoError as e:
            raise PersistenceError(f"save {record.analysis_id} failed: {e}") from e

        logger.bind(analysis_id=record.analysis_id, status=record.status).debug(
            f"Saved analysis {record.analysis_id}"
        )
        return True

    async def get(self, analysis_id: str) -> Optional[AnalysisRecord]:
        try:
            document = await self.collection.find_one({"analysisId": analysis_id})
        except PyMongoError as e:
            raise PersistenceError(f"get {analysis_id} failed: {e}") from e

        if document is None:
            return None
        document.pop("_id", None)
        return AnalysisRecord.model_validate(document)

    async def ping(self) -> bool:
        return await self.db_manager.ping()

    async def close(self) -> None:
        await self.db_manager.disconnect()


class InMemoryAnalysisStore(AnalysisStore):
    """
    Process-local store for tests, the CLI runner and single-instance demos.
    Records are kept as camelCase documents, the same shape Mongo stores.
    """

    backend = "memory"

    def __init__(self):
        self._documents: Dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def save(self, record: AnalysisRecord) -> bool:
        async with self._lock:
            existing = self._documents.get(record.analysis_id)
            if existing is not None and AnalysisStatus(existing.get("status")) in TERMINAL_STATUSES:
                logger.warning(
                    f"🔒 Refusing to overwrite terminal analysis {record.analysis_id} "
                    f"with status {record.status}"
                )
                return False
            self._documents[record.analysis_id] = record.to_document()
            return True

    async def get(self, analysis_id: str) -> Optional[AnalysisRecord]:
        async with self._lock:
            document = self._documents.get(analysis_id)
        return AnalysisRecord.model_validate(document) if document is not None else None
