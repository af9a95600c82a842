from prometheus_client import Counter, Histogram

CHANGEWATCH_OPERATIONS_TOTAL = Counter(
    "changewatch_operations_total",
    "Operations seen by the change watch middleware; reads issued by watchers are counted as outcome=lookup",
    ["operation", "outcome"],
)

CHANGEWATCH_PROCESS_LATENCY_SECONDS = Histogram(
    "changewatch_process_latency_seconds",
    "Time spent processing an operation in the change watch middleware, execution included",
    ["operation"],
)

CHANGEWATCH_CHANGES_TOTAL = Counter(
    "changewatch_changes_total",
    "Post-execution changes reported by the change watch middleware",
    ["collection", "change_type"],
)

STORAGE_OPERATION_TOTAL = Counter(
    "changewatch_storage_operation_total",
    "Operations executed by the storage backend",
    ["operation", "status"],
)

STORAGE_OPERATION_LATENCY_SECONDS = Histogram(
    "changewatch_storage_operation_latency_seconds",
    "Storage backend operation latency",
    ["operation"],
)
