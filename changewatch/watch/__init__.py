from .middleware import CHANGE_INFO_KEY, ChangeWatchMiddleware
from .models import (
    ChangeInfo,
    ChangeType,
    CreationChange,
    DeletionChange,
    ModificationChange,
    OperationEvent,
    OperationName,
    Phase,
    StorageChange,
)
from .watchers import (
    DEFAULT_OPERATION_WATCHERS,
    OperationWatcher,
    WatchContext,
    make_operation_watchers,
)

__all__ = [
    "CHANGE_INFO_KEY",
    "ChangeInfo",
    "ChangeType",
    "ChangeWatchMiddleware",
    "CreationChange",
    "DEFAULT_OPERATION_WATCHERS",
    "DeletionChange",
    "ModificationChange",
    "OperationEvent",
    "OperationName",
    "OperationWatcher",
    "Phase",
    "StorageChange",
    "WatchContext",
    "make_operation_watchers",
]
