from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from ..config import StorageConfig
from ..errors import ChangeWatchError, InvalidFilterError, StorageError, UnsupportedOperationError
from .filters import build_where_clause
from .metrics import observe_storage_operation
from .registry import CollectionDefinition, CollectionRegistry

logger = logging.getLogger(__name__)

_COLUMN_TYPES = {
    "string": String,
    "text": Text,
    "int": Integer,
    "float": Float,
    "boolean": Boolean,
    "json": JSON,
}


class StorageBackend(Protocol):
    """
    Protocol for the executing end of a StorageManager's pipeline.
    """

    registry: CollectionRegistry

    async def operation(self, name: str, *args: Any) -> Any:
        """Execute a single operation and return its result."""
        ...


def create_storage_engine(config: StorageConfig) -> AsyncEngine:
    """
    Create an AsyncEngine for `config`.

    In-memory SQLite databases live as long as their connection, so they get a
    StaticPool that keeps the one connection around.
    """
    if ":memory:" in config.database_url:
        return create_async_engine(config.database_url, echo=config.echo, poolclass=StaticPool)
    return create_async_engine(config.database_url, echo=config.echo)


class SqlStorageBackend:
    """
    Object store backed by an SQLAlchemy AsyncEngine.

    Each call to operation() runs in its own transaction. executeBatch runs
    all of its sub-operations in one transaction, so a batch is applied
    entirely or not at all.

    Usage:
        backend = SqlStorageBackend(engine, registry)
        await backend.create_tables()
        result = await backend.operation("createObject", "user", {"displayName": "Joe"})
        result["object"]["id"]
    """

    def __init__(self, engine: AsyncEngine, registry: Optional[CollectionRegistry] = None) -> None:
        self.engine = engine
        self.registry = registry if registry is not None else CollectionRegistry()
        self.metadata = MetaData()
        self._tables: dict[str, Table] = {}
        self._handlers: dict[str, Callable[..., Awaitable[Any]]] = {
            "createObject": self._create_object,
            "findObject": self._find_object,
            "findObjects": self._find_objects,
            "countObjects": self._count_objects,
            "updateObject": self._update_objects,
            "updateObjects": self._update_objects,
            "deleteObject": self._delete_objects,
            "deleteObjects": self._delete_objects,
            "executeBatch": self._execute_batch,
        }

    def table(self, collection: str) -> Table:
        table = self._tables.get(collection)
        if table is None:
            table = self._build_table(self.registry.get(collection))
            self._tables[collection] = table
        return table

    def _build_table(self, definition: CollectionDefinition) -> Table:
        pk_fields = set(definition.pk_fields)
        columns = []
        if definition.has_generated_pk:
            columns.append(Column(definition.pk_index, Integer, primary_key=True, autoincrement=True))
        for name, field_def in definition.fields.items():
            columns.append(
                Column(
                    name,
                    _COLUMN_TYPES[field_def.type],
                    primary_key=name in pk_fields,
                    nullable=name not in pk_fields,
                )
            )
        return Table(definition.name, self.metadata, *columns)

    async def create_tables(self) -> None:
        for collection in self.registry.collections:
            self.table(collection)
        async with self.engine.begin() as conn:
            await conn.run_sync(self.metadata.create_all)
        logger.info("Created tables for collections: %s", ", ".join(sorted(self._tables)))

    async def operation(self, name: str, *args: Any) -> Any:
        """
        Execute the operation in a fresh transaction.
        Raises StorageError on failure.
        """
        handler = self._handlers.get(name)
        if handler is None:
            observe_storage_operation(name, "error", 0.0)
            raise UnsupportedOperationError(f"Unsupported storage operation: {name!r}")

        start_time = time.monotonic()
        status = "success"
        try:
            async with self.engine.begin() as conn:
                return await handler(conn, *args)
        except ChangeWatchError:
            status = "error"
            raise
        except SQLAlchemyError as exc:
            status = "error"
            raise StorageError(str(exc)) from exc
        finally:
            observe_storage_operation(name, status, time.monotonic() - start_time)

    def _check_fields(self, table: Table, values: Mapping[str, Any]) -> None:
        unknown = [key for key in values if key not in table.c]
        if unknown:
            raise InvalidFilterError(f"Collection {table.name!r} has no fields {sorted(unknown)}")

    def _order_by_pk(self, table: Table, collection: str) -> list:
        return [table.c[name] for name in self.registry.get(collection).pk_fields]

    async def _create_object(self, conn: AsyncConnection, collection: str, values: Mapping[str, Any]) -> dict[str, Any]:
        definition = self.registry.get(collection)
        table = self.table(collection)
        row = dict(values)
        if definition.has_generated_pk and row.get(definition.pk_index) is None:
            row.pop(definition.pk_index, None)
        self._check_fields(table, row)

        result = await conn.execute(insert(table).values(**row))
        obj = dict(row)
        # Key columns the store assigned, declared or not
        for column, value in zip(table.primary_key.columns, result.inserted_primary_key):
            if obj.get(column.name) is None and value is not None:
                obj[column.name] = value
        return {"object": obj}

    async def _find_objects(
        self,
        conn: AsyncConnection,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        table = self.table(collection)
        stmt = select(table).where(build_where_clause(table, where)).order_by(*self._order_by_pk(table, collection))
        options = options or {}
        if options.get("limit") is not None:
            stmt = stmt.limit(options["limit"])
        if options.get("skip"):
            stmt = stmt.offset(options["skip"])
        result = await conn.execute(stmt)
        return [dict(row) for row in result.mappings()]

    async def _find_object(
        self,
        conn: AsyncConnection,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> Optional[dict[str, Any]]:
        objects = await self._find_objects(conn, collection, where, {"limit": 1})
        return objects[0] if objects else None

    async def _count_objects(
        self,
        conn: AsyncConnection,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
    ) -> int:
        table = self.table(collection)
        stmt = select(func.count()).select_from(table).where(build_where_clause(table, where))
        result = await conn.execute(stmt)
        return int(result.scalar_one())

    async def _update_objects(
        self,
        conn: AsyncConnection,
        collection: str,
        where: Mapping[str, Any],
        updates: Mapping[str, Any],
    ) -> dict[str, int]:
        table = self.table(collection)
        self._check_fields(table, updates)
        if not updates:
            return {"count": 0}
        result = await conn.execute(update(table).where(build_where_clause(table, where)).values(**updates))
        return {"count": int(result.rowcount)}

    async def _delete_objects(
        self,
        conn: AsyncConnection,
        collection: str,
        where: Mapping[str, Any],
    ) -> dict[str, int]:
        table = self.table(collection)
        result = await conn.execute(delete(table).where(build_where_clause(table, where)))
        return {"count": int(result.rowcount)}

    async def _execute_batch(self, conn: AsyncConnection, batch: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
        info: dict[str, Any] = {}
        for batch_operation in batch:
            name = batch_operation.get("operation")
            collection = batch_operation["collection"]
            if name == "createObject":
                result = await self._create_object(conn, collection, batch_operation.get("args", {}))
            elif name == "updateObjects":
                result = await self._update_objects(
                    conn, collection, batch_operation.get("where", {}), batch_operation.get("updates", {})
                )
            elif name == "deleteObjects":
                result = await self._delete_objects(conn, collection, batch_operation.get("where", {}))
            else:
                raise UnsupportedOperationError(f"Unsupported batch operation: {name!r}")

            placeholder = batch_operation.get("placeholder")
            if placeholder:
                info[placeholder] = result
        return {"info": info}
