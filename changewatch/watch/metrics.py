from ..metrics.registry import (
    CHANGEWATCH_CHANGES_TOTAL,
    CHANGEWATCH_OPERATIONS_TOTAL,
    CHANGEWATCH_PROCESS_LATENCY_SECONDS,
)
from .models import ChangeInfo


def observe_operation(operation: str, outcome: str, latency_s: float) -> None:
    CHANGEWATCH_OPERATIONS_TOTAL.labels(operation=operation, outcome=outcome).inc()
    CHANGEWATCH_PROCESS_LATENCY_SECONDS.labels(operation=operation).observe(latency_s)


def observe_changes(info: ChangeInfo) -> None:
    for change in info.changes:
        CHANGEWATCH_CHANGES_TOTAL.labels(collection=change.collection, change_type=change.type.value).inc()
