import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram


LEDGER_OPERATIONS_TOTAL = Counter(
    "ledger_operations_total",
    "Total number of account operations",
    ["operation", "outcome"],
)

LEDGER_VOLUME_TOTAL = Counter(
    "ledger_volume_total",
    "Total amount moved by successful account operations",
    ["operation"],
)

TRANSFER_REVERSALS_TOTAL = Counter(
    "transfer_reversals_total",
    "Total compensating reversals of transfer debits",
    ["completed"],
)

PIN_LOCKOUTS_TOTAL = Counter(
    "pin_lockouts_total",
    "Total accounts locked after repeated PIN failures",
)

PAYMENT_REQUESTS_TOTAL = Counter(
    "payment_requests_total",
    "Total number of channel payment requests",
    ["channel", "status", "error_code"],
)

TRANSACTIONS_HOLDING_RESOURCES = Gauge(
    "transactions_holding_resources",
    "Number of transactions currently holding acquired resources",
)

OPERATION_DURATION_SECONDS = Histogram(
    "ledger_operation_duration_seconds",
    "Ledger operation processing duration",
    ["operation"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)


P = ParamSpec("P")
R = TypeVar("R")


def track_duration(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                duration = time.perf_counter() - start
                OPERATION_DURATION_SECONDS.labels(operation=operation).observe(duration)

        return wrapper

    return decorator
