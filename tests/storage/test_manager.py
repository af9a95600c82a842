from __future__ import annotations

from typing import Any

import pytest

from changewatch.config import StorageConfig
from changewatch.errors import UnknownCollectionError
from changewatch.storage import MiddlewareContext, SqlStorageBackend, StorageManager


class RecordingMiddleware:
    def __init__(self, name: str, calls: list, extra_data: dict[str, Any] | None = None) -> None:
        self.name = name
        self.calls = calls
        self.extra_data = extra_data

    async def process(self, context: MiddlewareContext) -> Any:
        self.calls.append((self.name, list(context.operation), dict(context.extra_data)))
        return await context.next.process(context.operation, extra_data=self.extra_data)


class RewritingMiddleware:
    async def process(self, context: MiddlewareContext) -> Any:
        if context.operation[0] != "createObject":
            return await context.next.process(context.operation)
        _, collection, values = context.operation
        return await context.next.process(["createObject", collection, {**values, "displayName": "Rewritten"}])


@pytest.mark.asyncio
async def test_operations_pass_through_middleware_in_order(storage_manager: StorageManager) -> None:
    calls: list = []
    storage_manager.set_middleware(
        [
            RecordingMiddleware("first", calls, extra_data={"marker": 1}),
            RecordingMiddleware("second", calls),
        ]
    )

    await storage_manager.operation("countObjects", "user", {})

    assert calls == [
        ("first", ["countObjects", "user", {}], {}),
        ("second", ["countObjects", "user", {}], {"marker": 1}),
    ]


@pytest.mark.asyncio
async def test_middleware_can_replace_the_operation(storage_manager: StorageManager) -> None:
    storage_manager.set_middleware([RewritingMiddleware()])

    result = await storage_manager.collection("user").create_object({"displayName": "Joe"})

    assert result["object"]["displayName"] == "Rewritten"
    assert await storage_manager.collection("user").find_objects() == [result["object"]]
    assert await storage_manager.collection("user").count_objects({"displayName": "Joe"}) == 0


@pytest.mark.asyncio
async def test_collection_proxy_covers_crud(storage_manager: StorageManager) -> None:
    users = storage_manager.collection("user")

    joe = (await users.create_object({"displayName": "Joe"}))["object"]
    bob = (await users.create_object({"displayName": "Bob"}))["object"]
    await users.update_object({"id": joe["id"]}, {"displayName": "Jon"})
    await users.update_objects({"displayName": "Bob"}, {"displayName": "Rob"})

    assert await users.find_object({"id": joe["id"]}) == {"id": joe["id"], "displayName": "Jon"}
    assert await users.count_objects() == 2
    assert await users.find_objects({}, {"limit": 1}) == [{"id": joe["id"], "displayName": "Jon"}]

    await users.delete_object({"id": joe["id"]})
    await users.delete_objects({"displayName": "Rob"})
    assert await users.count_objects({"id": bob["id"]}) == 0


@pytest.mark.asyncio
async def test_collection_proxy_rejects_unknown_collection(storage_manager: StorageManager) -> None:
    with pytest.raises(UnknownCollectionError):
        storage_manager.collection("nope")


@pytest.mark.asyncio
async def test_from_config_builds_sql_backend() -> None:
    manager = StorageManager.from_config(StorageConfig())
    try:
        assert isinstance(manager.backend, SqlStorageBackend)
        manager.registry.register_collections({"note": {"fields": {"body": {"type": "text"}}}})
        await manager.finish_initialization()

        await manager.collection("note").create_object({"body": "hello"})
        assert await manager.collection("note").count_objects() == 1
    finally:
        await manager.backend.engine.dispose()
