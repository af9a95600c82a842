from .config import ChangeWatchConfig, StorageConfig
from .storage import StorageManager, SqlStorageBackend
from .watch import ChangeInfo, ChangeWatchMiddleware, OperationEvent

__all__ = [
    "ChangeInfo",
    "ChangeWatchConfig",
    "ChangeWatchMiddleware",
    "OperationEvent",
    "SqlStorageBackend",
    "StorageConfig",
    "StorageManager",
]
