from __future__ import annotations

import copy
from typing import Any, Mapping

from ...errors import InvariantViolationError
from ..models import ChangeInfo, CreationChange, Operation
from .base import OperationWatcher, WatchContext


def _is_present(value: Any) -> bool:
    return value is not None and value != ""


def _has_complete_pk(pk: Any) -> bool:
    if isinstance(pk, list):
        return bool(pk) and all(_is_present(part) for part in pk)
    return _is_present(pk)


class CreateObjectWatcher(OperationWatcher):
    """
    Watches ['createObject', collection, values].

    The key only appears in the pre-execution change when the caller supplied
    all of it; after execution it is read back from the created object.
    """

    async def get_info_before_execution(self, operation: Operation, context: WatchContext) -> ChangeInfo:
        _, collection, values = operation[:3]
        definition = context.get_collection_definition(collection)
        pk = definition.get_object_pk(values)
        change = CreationChange(
            collection=collection,
            values=copy.deepcopy(definition.get_object_without_pk(values)),
            pk=copy.deepcopy(pk) if _has_complete_pk(pk) else None,
        )
        return ChangeInfo(changes=[change])

    async def get_info_after_execution(
        self,
        operation: Operation,
        pre_info: ChangeInfo,
        result: Any,
        context: WatchContext,
    ) -> ChangeInfo:
        _, collection, values = operation[:3]
        if not isinstance(result, Mapping) or not isinstance(result.get("object"), Mapping):
            raise InvariantViolationError(
                f"createObject on {collection!r} returned no created object: {result!r}"
            )
        definition = context.get_collection_definition(collection)
        change = CreationChange(
            collection=collection,
            values=copy.deepcopy(definition.get_object_without_pk(values)),
            pk=copy.deepcopy(definition.get_object_pk(result["object"])),
        )
        return ChangeInfo(changes=[change])
