from .backend import SqlStorageBackend, StorageBackend, create_storage_engine
from .manager import CollectionProxy, MiddlewareContext, StorageManager, StorageMiddleware
from .registry import (
    CollectionDefinition,
    CollectionRegistry,
    FieldDefinition,
    PrimaryKey,
    get_object_pk,
    get_object_without_pk,
)

__all__ = [
    "CollectionDefinition",
    "CollectionProxy",
    "CollectionRegistry",
    "FieldDefinition",
    "MiddlewareContext",
    "PrimaryKey",
    "SqlStorageBackend",
    "StorageBackend",
    "StorageManager",
    "StorageMiddleware",
    "create_storage_engine",
    "get_object_pk",
    "get_object_without_pk",
]
