from .registry import (
    CHANGEWATCH_CHANGES_TOTAL,
    CHANGEWATCH_OPERATIONS_TOTAL,
    CHANGEWATCH_PROCESS_LATENCY_SECONDS,
    STORAGE_OPERATION_LATENCY_SECONDS,
    STORAGE_OPERATION_TOTAL,
)

__all__ = [
    "CHANGEWATCH_CHANGES_TOTAL",
    "CHANGEWATCH_OPERATIONS_TOTAL",
    "CHANGEWATCH_PROCESS_LATENCY_SECONDS",
    "STORAGE_OPERATION_LATENCY_SECONDS",
    "STORAGE_OPERATION_TOTAL",
]
