from __future__ import annotations

import copy
import inspect
import logging
import time
from contextvars import ContextVar
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from ..config import ChangeWatchConfig
from ..errors import UsageError
from ..storage.manager import MiddlewareContext, StorageManager
from .metrics import observe_changes, observe_operation
from .models import ChangeInfo, Operation, OperationEvent, Phase, ShouldWatchCollection
from .watchers import (
    DEFAULT_OPERATION_WATCHERS,
    DEFAULT_PLACEHOLDER_PREFIX,
    CollectionLookup,
    OperationWatcher,
    WatchContext,
    make_operation_watchers,
)

logger = logging.getLogger(__name__)

CHANGE_INFO_KEY = "change_info"

# Set while a watcher reads the objects an operation will affect
_resolving_changes: ContextVar[bool] = ContextVar("changewatch_resolving_changes", default=False)

OperationHook = Callable[[OperationEvent], Union[None, Awaitable[None]]]


async def _run_hook(hook: Optional[OperationHook], event: OperationEvent) -> None:
    if hook is None:
        return
    result = hook(event)
    if inspect.isawaitable(result):
        await result


class ChangeWatchMiddleware:
    """
    Storage middleware reporting the changes write operations cause.

    For every operation with a registered watcher, the middleware computes
    the changes before execution, lets the watcher rewrite the operation into
    one whose effects line up with those changes, runs it through the rest of
    the pipeline and computes the changes after execution. Both descriptions
    are handed to the optional hooks; the pre-execution one is also attached
    to the forwarded call as `extra_data["change_info"]`.

    The pre-execution description only lists changes to watched collections.
    The post-execution description lists every change of the operation, so a
    batch mixing watched and unwatched collections reports all of its
    sub-operations after execution.

    Operations without a watcher, operations touching only collections that
    are not watched, and every operation while `enabled` is False are
    forwarded unchanged and reach no hook.

    Usage:
        middleware = ChangeWatchMiddleware(
            storage_manager,
            should_watch_collection=lambda collection: collection != "log",
            postprocess_operation=lambda event: publish(event.info.to_dict()),
        )
        storage_manager.set_middleware([middleware])

    All errors, including those raised by hooks, propagate to the caller.
    """

    def __init__(
        self,
        storage_manager: StorageManager,
        should_watch_collection: Optional[ShouldWatchCollection] = None,
        *,
        config: Optional[ChangeWatchConfig] = None,
        operation_watchers: Optional[Mapping[str, OperationWatcher]] = None,
        get_collection_definition: Optional[CollectionLookup] = None,
        preprocess_operation: Optional[OperationHook] = None,
        postprocess_operation: Optional[OperationHook] = None,
    ) -> None:
        """
        Args:
            storage_manager: Store used for schema lookups and affected-object reads
            should_watch_collection: Predicate selecting reported collections;
                defaults to config.should_watch_collection
            config: Middleware configuration
            operation_watchers: Replaces the whole watcher table; use
                make_operation_watchers() to extend the defaults instead
            get_collection_definition: Schema lookup; defaults to the store's registry
            preprocess_operation: Called with the pre-execution event, may be async
            postprocess_operation: Called with the post-execution event, may be async
        """
        self.config = config or ChangeWatchConfig()
        self.storage_manager = storage_manager
        self.should_watch_collection = should_watch_collection or self.config.should_watch_collection
        self.enabled = self.config.enabled
        self.get_collection_definition = get_collection_definition or storage_manager.registry.get
        self.preprocess_operation = preprocess_operation
        self.postprocess_operation = postprocess_operation

        if operation_watchers is not None:
            self.operation_watchers: Mapping[str, OperationWatcher] = MappingProxyType(dict(operation_watchers))
        elif self.config.placeholder_prefix != DEFAULT_PLACEHOLDER_PREFIX:
            self.operation_watchers = MappingProxyType(
                make_operation_watchers(placeholder_prefix=self.config.placeholder_prefix)
            )
        else:
            self.operation_watchers = DEFAULT_OPERATION_WATCHERS

    def _filter_info(self, info: ChangeInfo) -> ChangeInfo:
        return ChangeInfo(
            changes=[change for change in info.changes if self.should_watch_collection(change.collection)]
        )

    async def _execute_next(
        self,
        context: MiddlewareContext,
        operation: Operation,
        pre_info: Optional[ChangeInfo] = None,
    ) -> Any:
        change_info = copy.deepcopy(pre_info) if pre_info is not None else ChangeInfo()
        return await context.next.process(copy.deepcopy(operation), extra_data={CHANGE_INFO_KEY: change_info})

    async def process(self, context: MiddlewareContext) -> Any:
        original_operation = copy.deepcopy(context.operation)
        operation_name = "unknown"
        start_time = time.monotonic()
        outcome = "passthrough"

        try:
            if not original_operation:
                raise UsageError("Change watch middleware received an empty operation")
            operation_name = original_operation[0]

            if not self.enabled:
                logger.debug("Change watching disabled, forwarding %s", operation_name)
                return await self._execute_next(context, original_operation)

            watcher = self.operation_watchers.get(operation_name)
            if watcher is None:
                if _resolving_changes.get():
                    outcome = "lookup"
                return await self._execute_next(context, original_operation)

            watch_context = WatchContext(
                storage_manager=self.storage_manager,
                get_collection_definition=self.get_collection_definition,
            )
            token = _resolving_changes.set(True)
            try:
                raw_pre_info = await watcher.get_info_before_execution(
                    copy.deepcopy(original_operation), watch_context
                )
            finally:
                _resolving_changes.reset(token)
            pre_info = self._filter_info(raw_pre_info)
            if not pre_info.changes:
                outcome = "filtered"
                logger.debug("No watched collections affected by %s, forwarding unchanged", operation_name)
                return await self._execute_next(context, original_operation)

            modified_operation = await watcher.transform_operation(
                copy.deepcopy(original_operation), watch_context, pre_info
            )
            outcome = "watched"

            await _run_hook(
                self.preprocess_operation,
                OperationEvent(
                    original_operation=copy.deepcopy(original_operation),
                    modified_operation=copy.deepcopy(modified_operation),
                    info=copy.deepcopy(pre_info),
                    phase=Phase.PRE,
                ),
            )

            operation = modified_operation if modified_operation is not None else original_operation
            result = await self._execute_next(context, operation, pre_info)

            # Built from the unfiltered pre info and reported unfiltered, so
            # batch entries keep their positions
            post_info = await watcher.get_info_after_execution(
                copy.deepcopy(original_operation), raw_pre_info, result, watch_context
            )
            observe_changes(post_info)

            await _run_hook(
                self.postprocess_operation,
                OperationEvent(
                    original_operation=copy.deepcopy(original_operation),
                    modified_operation=copy.deepcopy(modified_operation),
                    info=post_info,
                    phase=Phase.POST,
                ),
            )
            return result
        except Exception:
            outcome = "error"
            raise
        finally:
            observe_operation(operation_name, outcome, time.monotonic() - start_time)
