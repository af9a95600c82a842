from __future__ import annotations

import os
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Optional

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from changewatch.config import StorageConfig
from changewatch.storage import SqlStorageBackend, StorageManager, create_storage_engine

DEFAULT_TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

StorageManagerFactory = Callable[..., Awaitable[StorageManager]]


@pytest.fixture(scope="session")
def database_url() -> str:
    """
    Database URL for unit tests.

    Defaults to an in-memory SQLite database. Set CHANGEWATCH_TEST_DB_URL to
    run against another database with an async SQLAlchemy driver.
    """
    return os.environ.get("CHANGEWATCH_TEST_DB_URL", DEFAULT_TEST_DB_URL)


@pytest_asyncio.fixture
async def engine(database_url: str) -> AsyncIterator[AsyncEngine]:
    """
    Per-test async engine.

    We fail fast if the database is unreachable, so failures are actionable.
    """
    eng = create_storage_engine(StorageConfig(database_url=database_url))
    try:
        async with eng.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover
        await eng.dispose()
        pytest.fail(
            "Test database is not reachable.\n"
            f"- CHANGEWATCH_TEST_DB_URL={database_url!r}\n"
            f"- Underlying error: {exc}",
            pytrace=False,
        )

    yield eng
    await eng.dispose()


def default_collections(
    user_fields: Optional[dict[str, Any]] = None,
    user_indices: Optional[list[dict[str, Any]]] = None,
) -> dict[str, dict[str, Any]]:
    return {
        "user": {
            "fields": user_fields or {"displayName": {"type": "string"}},
            "indices": user_indices or [],
        },
        "email": {
            "fields": {"address": {"type": "string"}},
        },
    }


@pytest_asyncio.fixture
async def storage_manager_factory(engine: AsyncEngine) -> AsyncIterator[StorageManagerFactory]:
    """
    Factory fixture creating a StorageManager with `user` and `email` collections.

    Usage:
        manager = await storage_manager_factory(user_fields={...}, user_indices=[...])
    """
    created: list[SqlStorageBackend] = []

    async def _create(
        user_fields: Optional[dict[str, Any]] = None,
        user_indices: Optional[list[dict[str, Any]]] = None,
    ) -> StorageManager:
        backend = SqlStorageBackend(engine)
        backend.registry.register_collections(default_collections(user_fields, user_indices))
        manager = StorageManager(backend)
        await manager.finish_initialization()
        created.append(backend)
        return manager

    yield _create

    for backend in created:
        async with engine.begin() as conn:
            await conn.run_sync(backend.metadata.drop_all)


@pytest_asyncio.fixture
async def storage_manager(storage_manager_factory: StorageManagerFactory) -> StorageManager:
    return await storage_manager_factory()
