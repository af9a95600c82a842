from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..config import StorageConfig
from .backend import SqlStorageBackend, StorageBackend, create_storage_engine
from .registry import CollectionRegistry


class NextStage(Protocol):
    async def process(self, operation: list, extra_data: Optional[dict[str, Any]] = None) -> Any:
        """Hand the operation to the rest of the pipeline and return its result."""
        ...


@dataclass
class MiddlewareContext:
    """
    What a middleware sees of an operation travelling through the pipeline.

    `extra_data` is the side channel an earlier middleware attached when it
    forwarded the operation; it is empty for the first middleware.
    """
    operation: list
    next: NextStage
    extra_data: dict[str, Any] = field(default_factory=dict)


class StorageMiddleware(Protocol):
    """
    Protocol for a pipeline stage sitting between StorageManager.operation()
    and the backend. Implementations forward through `context.next.process()`.
    """

    async def process(self, context: MiddlewareContext) -> Any:
        ...


class _PipelineStage:
    def __init__(self, middleware: Sequence[StorageMiddleware], index: int, backend: StorageBackend) -> None:
        self._middleware = middleware
        self._index = index
        self._backend = backend

    async def process(self, operation: list, extra_data: Optional[dict[str, Any]] = None) -> Any:
        if self._index >= len(self._middleware):
            return await self._backend.operation(operation[0], *operation[1:])
        context = MiddlewareContext(
            operation=operation,
            next=_PipelineStage(self._middleware, self._index + 1, self._backend),
            extra_data=extra_data if extra_data is not None else {},
        )
        return await self._middleware[self._index].process(context)


class StorageManager:
    """
    Entry point for all store operations.

    Every operation, including the reads middleware issue on their own behalf,
    goes through the configured middleware in order before reaching the backend.

    Usage:
        manager = StorageManager(SqlStorageBackend(engine))
        manager.registry.register_collections({...})
        await manager.finish_initialization()
        manager.set_middleware([ChangeWatchMiddleware(...)])
        await manager.collection("user").create_object({"displayName": "Joe"})
    """

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend
        self.registry: CollectionRegistry = backend.registry
        self._middleware: tuple[StorageMiddleware, ...] = ()

    @classmethod
    def from_config(cls, config: StorageConfig) -> "StorageManager":
        return cls(SqlStorageBackend(create_storage_engine(config)))

    async def finish_initialization(self) -> None:
        create_tables = getattr(self.backend, "create_tables", None)
        if create_tables is not None:
            await create_tables()

    def set_middleware(self, middleware: Sequence[StorageMiddleware]) -> None:
        self._middleware = tuple(middleware)

    @property
    def middleware(self) -> tuple[StorageMiddleware, ...]:
        return self._middleware

    async def operation(self, name: str, *args: Any) -> Any:
        # Snapshot so set_middleware() does not affect operations in flight
        stage = _PipelineStage(self._middleware, 0, self.backend)
        return await stage.process([name, *args])

    def collection(self, name: str) -> "CollectionProxy":
        self.registry.get(name)
        return CollectionProxy(self, name)


class CollectionProxy:
    def __init__(self, manager: StorageManager, name: str) -> None:
        self.manager = manager
        self.name = name

    async def create_object(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return await self.manager.operation("createObject", self.name, dict(values))

    async def find_object(self, where: Optional[Mapping[str, Any]] = None) -> Optional[dict[str, Any]]:
        return await self.manager.operation("findObject", self.name, dict(where or {}))

    async def find_objects(
        self,
        where: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        if options is None:
            return await self.manager.operation("findObjects", self.name, dict(where or {}))
        return await self.manager.operation("findObjects", self.name, dict(where or {}), dict(options))

    async def count_objects(self, where: Optional[Mapping[str, Any]] = None) -> int:
        return await self.manager.operation("countObjects", self.name, dict(where or {}))

    async def update_object(self, where: Mapping[str, Any], updates: Mapping[str, Any]) -> Any:
        return await self.manager.operation("updateObject", self.name, dict(where), dict(updates))

    async def update_objects(self, where: Mapping[str, Any], updates: Mapping[str, Any]) -> Any:
        return await self.manager.operation("updateObjects", self.name, dict(where), dict(updates))

    async def delete_object(self, where: Mapping[str, Any]) -> Any:
        return await self.manager.operation("deleteObject", self.name, dict(where))

    async def delete_objects(self, where: Mapping[str, Any]) -> Any:
        return await self.manager.operation("deleteObjects", self.name, dict(where))
