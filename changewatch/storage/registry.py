from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

from ..errors import InvalidSchemaError, UnknownCollectionError, UnsupportedPrimaryKeyError

FIELD_TYPES = ("string", "text", "int", "float", "boolean", "json")
DEFAULT_PK_FIELD = "id"

PrimaryKey = Union[str, int, list]
PkIndex = Union[str, list]


# PostgreSQL truncates identifiers beyond this; SQLite and MySQL allow more
MAX_NAME_LENGTH = 63

_NAME_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _validate_schema_name(name: str, kind: str, collection: Optional[str] = None) -> str:
    """
    Check that a collection or field name maps onto a table or column name
    every supported database accepts unquoted.

    Raises:
        TypeError: If `name` is not a string
        InvalidSchemaError: If `name` is empty, too long, or contains
            characters other than letters, digits and underscores
    """
    where = f" in collection {collection!r}" if collection is not None else ""
    if not isinstance(name, str):
        raise TypeError(f"{kind} name{where} must be a string, got {type(name).__name__}")
    if not _NAME_PATTERN.match(name):
        raise InvalidSchemaError(
            f"Invalid {kind} name {name!r}{where}: "
            "must start with a letter or underscore and contain only letters, digits and underscores"
        )
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidSchemaError(f"{kind.capitalize()} name {name!r}{where} exceeds {MAX_NAME_LENGTH} characters")
    return name


@dataclass
class FieldDefinition:
    type: str

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise InvalidSchemaError(f"Unsupported field type {self.type!r}, expected one of {FIELD_TYPES}")


@dataclass
class CollectionDefinition:
    """
    Schema of a single collection.

    `pk_index` is either the name of a single key field or an ordered list of
    field names for a compound key. Compound key values are always reported
    in this order.
    """
    name: str
    fields: dict[str, FieldDefinition] = field(default_factory=dict)
    pk_index: PkIndex = DEFAULT_PK_FIELD

    @property
    def pk_fields(self) -> list[str]:
        if isinstance(self.pk_index, str):
            return [self.pk_index]
        return list(self.pk_index)

    @property
    def has_compound_pk(self) -> bool:
        return not isinstance(self.pk_index, str)

    @property
    def has_generated_pk(self) -> bool:
        """True when the store assigns the key (an auto-increment integer)."""
        return isinstance(self.pk_index, str) and self.pk_index not in self.fields

    def get_object_pk(self, obj: Mapping[str, Any]) -> Optional[PrimaryKey]:
        """
        Primary key of `obj`: the bare value for single-field keys, a list in
        key-field order for compound keys. Missing fields show up as None.
        """
        if isinstance(self.pk_index, str):
            return obj.get(self.pk_index)
        return [obj.get(pk_field) for pk_field in self.pk_index]

    def get_object_without_pk(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        pk_fields = set(self.pk_fields)
        return {key: value for key, value in obj.items() if key not in pk_fields}


def _parse_fields(name: str, fields: Mapping[str, Any]) -> dict[str, FieldDefinition]:
    parsed: dict[str, FieldDefinition] = {}
    for field_name, field_def in fields.items():
        _validate_schema_name(field_name, "field", collection=name)
        if isinstance(field_def, FieldDefinition):
            parsed[field_name] = field_def
        elif isinstance(field_def, Mapping):
            parsed[field_name] = FieldDefinition(type=field_def["type"])
        else:
            parsed[field_name] = FieldDefinition(type=field_def)
    return parsed


def _parse_pk_index(name: str, fields: Mapping[str, FieldDefinition], indices: Sequence[Mapping[str, Any]]) -> PkIndex:
    pk_indices = [index for index in indices if index.get("pk")]
    if len(pk_indices) > 1:
        raise UnsupportedPrimaryKeyError(f"Collection {name!r} declares more than one primary key")
    if not pk_indices:
        return DEFAULT_PK_FIELD

    pk_field = pk_indices[0]["field"]
    if isinstance(pk_field, str):
        return pk_field
    if isinstance(pk_field, (list, tuple)) and pk_field:
        for part in pk_field:
            if not isinstance(part, str):
                raise UnsupportedPrimaryKeyError(
                    f"Collection {name!r} has a primary key type unsupported by change watching: {pk_field!r}"
                )
            if part not in fields:
                raise UnsupportedPrimaryKeyError(
                    f"Compound primary key of collection {name!r} refers to unknown field {part!r}"
                )
        return list(pk_field)
    raise UnsupportedPrimaryKeyError(
        f"Collection {name!r} has a primary key type unsupported by change watching: {pk_field!r}"
    )


class CollectionRegistry:
    """
    Registry of collection schemas known to a StorageManager.

    Usage:
        registry = CollectionRegistry()
        registry.register_collections({
            "user": {
                "fields": {"first": {"type": "string"}, "last": {"type": "string"}},
                "indices": [{"field": ["first", "last"], "pk": True}],
            },
        })
    """

    def __init__(self) -> None:
        self.collections: dict[str, CollectionDefinition] = {}

    def register_collection(
        self,
        name: str,
        fields: Mapping[str, Any],
        indices: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> CollectionDefinition:
        _validate_schema_name(name, "collection")
        parsed_fields = _parse_fields(name, fields)
        pk_index = _parse_pk_index(name, parsed_fields, indices or [])
        definition = CollectionDefinition(name=name, fields=parsed_fields, pk_index=pk_index)
        self.collections[name] = definition
        return definition

    def register_collections(self, collections: Mapping[str, Mapping[str, Any]]) -> None:
        for name, collection_def in collections.items():
            self.register_collection(name, collection_def.get("fields", {}), collection_def.get("indices"))

    def get(self, name: str) -> CollectionDefinition:
        try:
            return self.collections[name]
        except KeyError:
            raise UnknownCollectionError(f"Unknown collection {name!r}") from None

    def __contains__(self, name: object) -> bool:
        return name in self.collections


def get_object_pk(obj: Mapping[str, Any], collection: str, registry: CollectionRegistry) -> Optional[PrimaryKey]:
    return registry.get(collection).get_object_pk(obj)


def get_object_without_pk(obj: Mapping[str, Any], collection: str, registry: CollectionRegistry) -> dict[str, Any]:
    return registry.get(collection).get_object_without_pk(obj)
