from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from ..storage.registry import PrimaryKey

Operation = list
ShouldWatchCollection = Callable[[str], bool]


class OperationName(str, Enum):
    CREATE_OBJECT = "createObject"
    UPDATE_OBJECT = "updateObject"
    UPDATE_OBJECTS = "updateObjects"
    DELETE_OBJECT = "deleteObject"
    DELETE_OBJECTS = "deleteObjects"
    EXECUTE_BATCH = "executeBatch"


class ChangeType(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class Phase(str, Enum):
    PRE = "pre"
    POST = "post"


@dataclass
class CreationChange:
    """
    A created object. `pk` is always set after execution; before execution it
    is only set when the caller supplied the whole key.
    """
    collection: str
    values: dict[str, Any]
    pk: Optional[PrimaryKey] = None
    type: ChangeType = field(default=ChangeType.CREATE, init=False)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "collection": self.collection,
            "values": copy.deepcopy(self.values),
        }
        if self.pk is not None:
            data["pk"] = copy.deepcopy(self.pk)
        return data


@dataclass
class ModificationChange:
    collection: str
    where: dict[str, Any]
    updates: dict[str, Any]
    pks: list[PrimaryKey]
    type: ChangeType = field(default=ChangeType.MODIFY, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "collection": self.collection,
            "where": copy.deepcopy(self.where),
            "updates": copy.deepcopy(self.updates),
            "pks": copy.deepcopy(self.pks),
        }


@dataclass
class DeletionChange:
    collection: str
    where: dict[str, Any]
    pks: list[PrimaryKey]
    type: ChangeType = field(default=ChangeType.DELETE, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "collection": self.collection,
            "where": copy.deepcopy(self.where),
            "pks": copy.deepcopy(self.pks),
        }


StorageChange = Union[CreationChange, ModificationChange, DeletionChange]


@dataclass
class ChangeInfo:
    """
    Ordered changes caused by one operation, in the order the operation (or
    its batch sub-operations) listed them.
    """
    changes: list[StorageChange] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"changes": [change.to_dict() for change in self.changes]}


@dataclass
class OperationEvent:
    """
    Handed to the pre/post processing hooks.

    `modified_operation` is the rewritten operation that was actually sent to
    the store, or None when the original was forwarded as is.
    """
    original_operation: Operation
    info: ChangeInfo
    phase: Phase
    modified_operation: Optional[Operation] = None
