from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from ..models import OperationName
from .base import CollectionLookup, OperationWatcher, WatchContext
from .batch import ExecuteBatchWatcher
from .create import CreateObjectWatcher
from .filtered import (
    DEFAULT_PLACEHOLDER_PREFIX,
    DeleteObjectsWatcher,
    FilteredOperationWatcher,
    UpdateObjectsWatcher,
    get_change_where,
)


def _build_default_watchers(placeholder_prefix: str) -> dict[str, OperationWatcher]:
    create_object = CreateObjectWatcher()
    update_objects = UpdateObjectsWatcher(placeholder_prefix=placeholder_prefix)
    delete_objects = DeleteObjectsWatcher(placeholder_prefix=placeholder_prefix)
    return {
        OperationName.CREATE_OBJECT.value: create_object,
        OperationName.UPDATE_OBJECT.value: update_objects,
        OperationName.UPDATE_OBJECTS.value: update_objects,
        OperationName.DELETE_OBJECT.value: delete_objects,
        OperationName.DELETE_OBJECTS.value: delete_objects,
        OperationName.EXECUTE_BATCH.value: ExecuteBatchWatcher(create_object, update_objects, delete_objects),
    }


# Process-wide and read-only; middleware get it injected, never patched
DEFAULT_OPERATION_WATCHERS: Mapping[str, OperationWatcher] = MappingProxyType(
    _build_default_watchers(DEFAULT_PLACEHOLDER_PREFIX)
)


def make_operation_watchers(
    overrides: Optional[Mapping[str, OperationWatcher]] = None,
    placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX,
) -> dict[str, OperationWatcher]:
    """
    Build a watcher table for one middleware instance.

    Entries in `overrides` replace the default watcher of the same name or add
    watchers for new operation names. The defaults themselves are left alone.
    """
    if placeholder_prefix == DEFAULT_PLACEHOLDER_PREFIX:
        watchers = dict(DEFAULT_OPERATION_WATCHERS)
    else:
        watchers = _build_default_watchers(placeholder_prefix)
    watchers.update(overrides or {})
    return watchers


__all__ = [
    "CollectionLookup",
    "CreateObjectWatcher",
    "DEFAULT_OPERATION_WATCHERS",
    "DEFAULT_PLACEHOLDER_PREFIX",
    "DeleteObjectsWatcher",
    "ExecuteBatchWatcher",
    "FilteredOperationWatcher",
    "OperationWatcher",
    "UpdateObjectsWatcher",
    "WatchContext",
    "get_change_where",
    "make_operation_watchers",
]
