from __future__ import annotations

from typing import Any, Mapping, Sequence

from ...errors import InvariantViolationError, MissingPlaceholderError, UnknownBatchOperationError
from ..models import ChangeInfo, Operation, OperationName, StorageChange
from .base import OperationWatcher, WatchContext


class ExecuteBatchWatcher(OperationWatcher):
    """
    Watches ['executeBatch', [sub_operation, ...]].

    Each sub-operation is handed to the create/update/delete watcher as if it
    had been issued on its own, and the resulting changes are concatenated in
    batch order. Every sub-operation yields exactly one change, so change `i`
    belongs to sub-operation `i` in both phases.
    """

    def __init__(
        self,
        create_watcher: OperationWatcher,
        update_watcher: OperationWatcher,
        delete_watcher: OperationWatcher,
    ) -> None:
        self._watchers: dict[str, OperationWatcher] = {
            OperationName.CREATE_OBJECT.value: create_watcher,
            OperationName.UPDATE_OBJECTS.value: update_watcher,
            OperationName.DELETE_OBJECTS.value: delete_watcher,
        }

    def _validate_batch(self, batch: Sequence[Mapping[str, Any]]) -> None:
        """
        Reject the whole batch before anything is read or executed.

        Raises:
            UnknownBatchOperationError: If a sub-operation is not createObject,
                updateObjects or deleteObjects
            MissingPlaceholderError: If a createObject sub-operation has no
                placeholder to recover the created key from
        """
        for batch_operation in batch:
            name = batch_operation.get("operation")
            if name not in self._watchers:
                raise UnknownBatchOperationError(
                    f"Change watch middleware encountered unknown batch operation: {name!r}"
                )
            if name == OperationName.CREATE_OBJECT.value and not batch_operation.get("placeholder"):
                raise MissingPlaceholderError(
                    "Change watch middleware cannot handle executeBatch createObject operations without placeholders"
                )

    def _narrow(self, batch_operation: Mapping[str, Any]) -> tuple[OperationWatcher, Operation]:
        name = batch_operation["operation"]
        collection = batch_operation["collection"]
        if name == OperationName.CREATE_OBJECT.value:
            operation = [name, collection, batch_operation.get("args", {})]
        elif name == OperationName.UPDATE_OBJECTS.value:
            operation = [name, collection, batch_operation.get("where", {}), batch_operation.get("updates", {})]
        else:
            operation = [name, collection, batch_operation.get("where", {})]
        return self._watchers[name], operation

    async def get_info_before_execution(self, operation: Operation, context: WatchContext) -> ChangeInfo:
        batch = operation[1]
        self._validate_batch(batch)

        changes: list[StorageChange] = []
        for batch_operation in batch:
            watcher, sub_operation = self._narrow(batch_operation)
            info = await watcher.get_info_before_execution(sub_operation, context)
            changes.extend(info.changes)
        return ChangeInfo(changes=changes)

    async def get_info_after_execution(
        self,
        operation: Operation,
        pre_info: ChangeInfo,
        result: Any,
        context: WatchContext,
    ) -> ChangeInfo:
        batch = operation[1]
        self._validate_batch(batch)
        if len(pre_info.changes) != len(batch):
            raise InvariantViolationError(
                f"Batch of {len(batch)} operations has {len(pre_info.changes)} pre-execution changes"
            )

        changes: list[StorageChange] = []
        for index, batch_operation in enumerate(batch):
            watcher, sub_operation = self._narrow(batch_operation)
            sub_pre_info = ChangeInfo(changes=[pre_info.changes[index]])
            if batch_operation["operation"] == OperationName.CREATE_OBJECT.value:
                sub_result = self._placeholder_result(result, batch_operation["placeholder"])
            else:
                sub_result = result
            info = await watcher.get_info_after_execution(sub_operation, sub_pre_info, sub_result, context)
            changes.extend(info.changes)
        return ChangeInfo(changes=changes)

    def _placeholder_result(self, result: Any, placeholder: str) -> Any:
        try:
            return result["info"][placeholder]
        except (KeyError, TypeError):
            raise InvariantViolationError(
                f"Batch result carries no result for placeholder {placeholder!r}"
            ) from None
