"""
Database Connection Tests
Tests for the Motor client lifecycle without a live server.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.repositories.connection import DatabaseManager


pytestmark = pytest.mark.asyncio


class TestDatabaseManager:

    async def test_database_requires_connect(self, settings):
        manager = DatabaseManager(settings)

        with pytest.raises(RuntimeError, match="not connected"):
            _ = manager.database

    async def test_connect_is_idempotent(self, settings):
        manager = DatabaseManager(settings)

        with patch("src.repositories.connection.AsyncIOMotorClient") as client_cls:
            await manager.connect()
            await manager.connect()

        client_cls.assert_called_once()
        assert client_cls.call_args.args == (settings.mongodb_uri,)
        assert client_cls.call_args.kwargs["maxPoolSize"] == settings.mongodb_max_pool_size

    async def test_disconnect_closes_client(self, settings):
        manager = DatabaseManager(settings)

        with patch("src.repositories.connection.AsyncIOMotorClient") as client_cls:
            await manager.connect()
            await manager.disconnect()
            await manager.disconnect()

        client_cls.return_value.close.assert_called_once()
        with pytest.raises(RuntimeError):
            _ = manager.database

    async def test_ping(self, settings):
        manager = DatabaseManager(settings)
        assert await manager.ping() is False

        with patch("src.repositories.connection.AsyncIOMotorClient") as client_cls:
            client_cls.return_value.admin.command = AsyncMock(return_value={"ok": 1})
            await manager.connect()
            assert await manager.ping() is True

            client_cls.return_value.admin.command = AsyncMock(side_effect=Exception("down"))
            assert await manager.ping() is False

    async def test_create_indexes(self, settings):
        manager = DatabaseManager(settings)
        collection = MagicMock()
        collection.create_index = AsyncMock()
        database = MagicMock()
        database.__getitem__.return_value = collection
        manager._database = database

        await manager.create_indexes()

        database.__getitem__.assert_called_with(settings.analyses_table_name)
        first = collection.create_index.await_args_list[0]
        assert first.args == ("analysisId",)
        assert first.kwargs["unique"] is True
