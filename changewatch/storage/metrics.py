from ..metrics.registry import STORAGE_OPERATION_LATENCY_SECONDS, STORAGE_OPERATION_TOTAL


def observe_storage_operation(operation: str, status: str, latency_s: float) -> None:
    STORAGE_OPERATION_TOTAL.labels(operation=operation, status=status).inc()
    STORAGE_OPERATION_LATENCY_SECONDS.labels(operation=operation).observe(latency_s)
