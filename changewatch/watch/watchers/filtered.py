from __future__ import annotations

import copy
import logging
from abc import abstractmethod
from typing import Any, Optional

from ...errors import InvariantViolationError, UnsupportedPrimaryKeyError
from ...storage.registry import CollectionDefinition, PrimaryKey
from ..models import (
    ChangeInfo,
    ChangeType,
    DeletionChange,
    ModificationChange,
    Operation,
    OperationName,
    StorageChange,
)
from .base import OperationWatcher, WatchContext

logger = logging.getLogger(__name__)

DEFAULT_PLACEHOLDER_PREFIX = "change"


def get_change_where(pk: PrimaryKey, definition: CollectionDefinition) -> dict[str, Any]:
    """
    Equality filter selecting exactly the object with compound key `pk`.

    Raises:
        UnsupportedPrimaryKeyError: If the collection's key is not an ordered
            list of field names, or `pk` does not line up with it
    """
    if not isinstance(definition.pk_index, (list, tuple)):
        raise UnsupportedPrimaryKeyError(
            f"Collection {definition.name!r} has primary key type unsupported by change watching"
        )
    if not isinstance(pk, (list, tuple)) or len(pk) != len(definition.pk_index):
        raise UnsupportedPrimaryKeyError(
            f"Key {pk!r} does not match the compound primary key {definition.pk_index!r} "
            f"of collection {definition.name!r}"
        )

    where: dict[str, Any] = {}
    for pk_field, value in zip(definition.pk_index, pk):
        if not isinstance(pk_field, str):
            raise UnsupportedPrimaryKeyError(
                f"Collection {definition.name!r} has primary key type unsupported by change watching"
            )
        where[pk_field] = copy.deepcopy(value)
    return where


class FilteredOperationWatcher(OperationWatcher):
    """
    Shared logic for operations that select their objects with a filter.

    Before execution the filter is run as a read to learn which keys it
    matches. The operation is then rewritten into a batch addressing exactly
    those keys, so the reported keys are the keys the store touches. After
    execution the keys resolved before execution are reported again; they are
    not re-read, so a concurrent write between the read and the batch makes
    the report stale.
    """

    change_type: ChangeType
    batch_operation: OperationName

    def __init__(self, placeholder_prefix: str = DEFAULT_PLACEHOLDER_PREFIX) -> None:
        self.placeholder_prefix = placeholder_prefix

    @abstractmethod
    def _build_change(self, operation: Operation, pks: list[PrimaryKey]) -> StorageChange:
        ...

    @abstractmethod
    def _build_batch_operation(self, change: StorageChange, where: dict[str, Any], placeholder: str) -> dict[str, Any]:
        ...

    def _check_change(self, change: StorageChange, stage: str) -> None:
        if change.type != self.change_type:
            raise InvariantViolationError(
                f"{type(self).__name__} found a {change.type.value!r} change while {stage}, "
                f"expected {self.change_type.value!r}"
            )

    async def get_info_before_execution(self, operation: Operation, context: WatchContext) -> ChangeInfo:
        collection, where = operation[1], operation[2]
        definition = context.get_collection_definition(collection)
        affected_objects = await context.storage_manager.operation(
            "findObjects", collection, copy.deepcopy(where)
        )
        pks = [definition.get_object_pk(obj) for obj in affected_objects]
        return ChangeInfo(changes=[self._build_change(operation, pks)])

    async def transform_operation(
        self,
        operation: Operation,
        context: WatchContext,
        info: ChangeInfo,
    ) -> Optional[Operation]:
        batch: list[dict[str, Any]] = []
        for change in info.changes:
            self._check_change(change, "transforming the operation")
            definition = context.get_collection_definition(change.collection)

            if isinstance(definition.pk_index, str):
                where = {definition.pk_index: {"$in": copy.deepcopy(change.pks)}}
                batch.append(self._build_batch_operation(change, where, self._placeholder(len(batch))))
            elif isinstance(definition.pk_index, (list, tuple)):
                for pk in change.pks:
                    where = get_change_where(pk, definition)
                    batch.append(self._build_batch_operation(change, where, self._placeholder(len(batch))))
            else:
                raise UnsupportedPrimaryKeyError(
                    f"Collection {definition.name!r} has primary key type unsupported by change watching"
                )

        logger.debug(
            "Rewrote %s on %s into a batch of %d sub-operations",
            operation[0],
            operation[1],
            len(batch),
        )
        return [OperationName.EXECUTE_BATCH.value, batch]

    async def get_info_after_execution(
        self,
        operation: Operation,
        pre_info: ChangeInfo,
        result: Any,
        context: WatchContext,
    ) -> ChangeInfo:
        if len(pre_info.changes) != 1:
            raise InvariantViolationError(
                f"{type(self).__name__} expected exactly one pre-execution change, got {len(pre_info.changes)}"
            )
        pre_change = pre_info.changes[0]
        self._check_change(pre_change, "describing the executed operation")
        return ChangeInfo(changes=[self._build_change(operation, copy.deepcopy(pre_change.pks))])

    def _placeholder(self, index: int) -> str:
        return f"{self.placeholder_prefix}-{index}"


class UpdateObjectsWatcher(FilteredOperationWatcher):
    """Watches ['updateObject' | 'updateObjects', collection, where, updates]."""

    change_type = ChangeType.MODIFY
    batch_operation = OperationName.UPDATE_OBJECTS

    def _build_change(self, operation: Operation, pks: list[PrimaryKey]) -> StorageChange:
        _, collection, where, updates = operation[:4]
        return ModificationChange(
            collection=collection,
            where=copy.deepcopy(where),
            updates=copy.deepcopy(updates),
            pks=pks,
        )

    def _build_batch_operation(self, change: StorageChange, where: dict[str, Any], placeholder: str) -> dict[str, Any]:
        return {
            "placeholder": placeholder,
            "operation": self.batch_operation.value,
            "collection": change.collection,
            "where": where,
            "updates": copy.deepcopy(change.updates),
        }


class DeleteObjectsWatcher(FilteredOperationWatcher):
    """Watches ['deleteObject' | 'deleteObjects', collection, where]."""

    change_type = ChangeType.DELETE
    batch_operation = OperationName.DELETE_OBJECTS

    def _build_change(self, operation: Operation, pks: list[PrimaryKey]) -> StorageChange:
        _, collection, where = operation[:3]
        return DeletionChange(collection=collection, where=copy.deepcopy(where), pks=pks)

    def _build_batch_operation(self, change: StorageChange, where: dict[str, Any], placeholder: str) -> dict[str, Any]:
        return {
            "placeholder": placeholder,
            "operation": self.batch_operation.value,
            "collection": change.collection,
            "where": where,
        }
