from __future__ import annotations

import copy
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import pytest_asyncio

from changewatch.config import ChangeWatchConfig
from changewatch.storage import MiddlewareContext, StorageManager, StorageMiddleware
from changewatch.watch import ChangeWatchMiddleware, OperationEvent, OperationWatcher


class OperationLoggingMiddleware:
    def __init__(self) -> None:
        self.operations: list[list] = []

    async def process(self, context: MiddlewareContext) -> Any:
        self.operations.append(copy.deepcopy(context.operation))
        return await context.next.process(context.operation, extra_data=context.extra_data)


@dataclass
class WatchSetup:
    storage_manager: StorageManager
    middleware: ChangeWatchMiddleware
    logger: OperationLoggingMiddleware
    preprocessed: list[OperationEvent] = field(default_factory=list)
    postprocessed: list[OperationEvent] = field(default_factory=list)

    def pop_preprocessed(self) -> list[OperationEvent]:
        events = list(self.preprocessed)
        self.preprocessed.clear()
        return events

    def pop_postprocessed(self) -> list[OperationEvent]:
        events = list(self.postprocessed)
        self.postprocessed.clear()
        return events

    def pop_logged_operations(self) -> list[list]:
        operations = list(self.logger.operations)
        self.logger.operations.clear()
        return operations

    async def insert_test_objects(self, compound_pk: bool = False) -> tuple[dict, dict]:
        users = self.storage_manager.collection("user")
        if compound_pk:
            object1 = (await users.create_object({"first": "Joe", "last": "Doe", "foo": "Bla"}))["object"]
            object2 = (await users.create_object({"first": "Bob", "last": "Doe", "foo": "Bla"}))["object"]
        else:
            object1 = (await users.create_object({"displayName": "Joe"}))["object"]
            object2 = (await users.create_object({"displayName": "Bob"}))["object"]
        self.pop_preprocessed()
        self.pop_postprocessed()
        self.pop_logged_operations()
        return object1, object2


COMPOUND_USER_FIELDS = {
    "first": {"type": "string"},
    "last": {"type": "string"},
    "foo": {"type": "string"},
}
COMPOUND_USER_INDICES = [{"field": ["first", "last"], "pk": True}, {"field": "last"}]

WatchSetupFactory = Callable[..., Awaitable[WatchSetup]]


@pytest_asyncio.fixture
async def watch_setup_factory(storage_manager_factory) -> WatchSetupFactory:
    """
    Factory fixture wiring a ChangeWatchMiddleware in front of an operation
    logger, with hooks that record every event.

    Usage:
        setup = await watch_setup_factory(compound_pk=True)
    """

    async def _create(
        *,
        compound_pk: bool = False,
        should_watch_collection: Optional[Callable[[str], bool]] = None,
        config: Optional[ChangeWatchConfig] = None,
        operation_watchers: Optional[Mapping[str, OperationWatcher]] = None,
        preprocesses: bool = True,
        postprocesses: bool = True,
        extra_middleware: Sequence[StorageMiddleware] = (),
        user_fields: Optional[dict[str, Any]] = None,
        user_indices: Optional[list[dict[str, Any]]] = None,
        **middleware_kwargs: Any,
    ) -> WatchSetup:
        if compound_pk:
            user_fields, user_indices = COMPOUND_USER_FIELDS, COMPOUND_USER_INDICES
        manager = await storage_manager_factory(user_fields=user_fields, user_indices=user_indices)

        preprocessed: list[OperationEvent] = []
        postprocessed: list[OperationEvent] = []
        middleware = ChangeWatchMiddleware(
            manager,
            should_watch_collection=should_watch_collection,
            config=config,
            operation_watchers=operation_watchers,
            preprocess_operation=middleware_kwargs.pop(
                "preprocess_operation", preprocessed.append if preprocesses else None
            ),
            postprocess_operation=middleware_kwargs.pop(
                "postprocess_operation", postprocessed.append if postprocesses else None
            ),
            **middleware_kwargs,
        )
        logger = OperationLoggingMiddleware()
        manager.set_middleware([middleware, logger, *extra_middleware])
        return WatchSetup(
            storage_manager=manager,
            middleware=middleware,
            logger=logger,
            preprocessed=preprocessed,
            postprocessed=postprocessed,
        )

    return _create


@pytest_asyncio.fixture
async def watch_setup(watch_setup_factory: WatchSetupFactory) -> WatchSetup:
    return await watch_setup_factory()
