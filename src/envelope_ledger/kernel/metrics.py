"""
Prometheus metrics collection for Envelope Ledger.

Counts budget writes, lock rejections and reconciliations so a long-running
host (or a test) can see what the engines actually did.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Histogram

# ============================================================================
# Operation Metrics
# ============================================================================

operation_duration_seconds = Histogram(
    "envelope_operation_duration_seconds",
    "Duration of engine operations in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

operations_total = Counter(
    "envelope_operations_total",
    "Total number of engine operations",
    ["operation", "status"],  # status: success, rejected, failure
)

# ============================================================================
# Budget Metrics
# ============================================================================

allocation_writes_total = Counter(
    "envelope_allocation_writes_total",
    "Total number of allocation records written",
    ["reason"],  # assign, add, move, rollover, auto_fill
)

# ============================================================================
# Transaction & Reconciliation Metrics
# ============================================================================

locked_rejections_total = Counter(
    "envelope_locked_rejections_total",
    "Mutations refused because the transaction is reconciled",
    ["operation"],
)

reconciliations_completed_total = Counter(
    "envelope_reconciliations_completed_total",
    "Completed reconciliations",
    ["adjusted"],  # "true" / "false"
)

audit_failures_total = Counter(
    "envelope_audit_failures_total",
    "Audit records that could not be written",
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track engine operation duration and outcome.

    Domain errors count as "rejected", anything else as "failure".

    Args:
        operation: Operation name used as the metric label

    Returns:
        Decorated function that tracks duration
    """
    from envelope_ledger.kernel.errors import EnvelopeError

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except EnvelopeError:
                status = "rejected"
                raise
            except Exception:
                status = "failure"
                raise
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                operations_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator
