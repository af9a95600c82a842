from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ...storage.manager import StorageManager
from ...storage.registry import CollectionDefinition
from ..models import ChangeInfo, Operation

CollectionLookup = Callable[[str], CollectionDefinition]


@dataclass
class WatchContext:
    """
    Collaborators a watcher may use. Reads issued through `storage_manager`
    travel through the whole middleware pipeline like any other operation.
    """
    storage_manager: StorageManager
    get_collection_definition: CollectionLookup


class OperationWatcher(ABC):
    """
    Abstract base for per-operation change watchers.

    A watcher describes the changes an operation will cause before it runs,
    may rewrite it into an equivalent operation whose effects can be matched
    up with that description, and describes the changes it did cause once the
    store returned its result.
    """

    @abstractmethod
    async def get_info_before_execution(self, operation: Operation, context: WatchContext) -> ChangeInfo:
        """Describe the changes `operation` is about to cause."""
        ...

    async def transform_operation(
        self,
        operation: Operation,
        context: WatchContext,
        info: ChangeInfo,
    ) -> Optional[Operation]:
        """Return the operation to execute instead of `operation`, or None to keep it."""
        return None

    @abstractmethod
    async def get_info_after_execution(
        self,
        operation: Operation,
        pre_info: ChangeInfo,
        result: Any,
        context: WatchContext,
    ) -> ChangeInfo:
        """Describe the changes `operation` caused, given the store's result."""
        ...
