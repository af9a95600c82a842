class ChangeWatchError(Exception):
    """Base exception for changewatch errors."""


class UsageError(ChangeWatchError):
    """The caller handed the change watcher something it cannot work with."""


class UnknownBatchOperationError(UsageError):
    """A batch contained a sub-operation the watchers do not know."""


class MissingPlaceholderError(UsageError):
    """A batched createObject had no placeholder to recover its key from."""


class UnsupportedPrimaryKeyError(UsageError):
    """A collection declares a primary key shape that cannot be addressed."""


class InvariantViolationError(ChangeWatchError):
    """Change info did not have the shape a watcher produced for it."""


class StorageError(ChangeWatchError):
    """Any failure inside the object store."""


class UnknownCollectionError(StorageError):
    """No collection with the requested name is registered."""


class UnsupportedOperationError(StorageError):
    """The store does not implement the requested operation."""


class InvalidFilterError(StorageError):
    """A where filter could not be translated into a query."""


class InvalidSchemaError(StorageError, ValueError):
    """A collection schema cannot be mapped onto a table."""
