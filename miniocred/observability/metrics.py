"""
Prometheus metrics collection for miniocred.

Counts lifecycle operations, policy registrations and identities left behind
by a failed create, so orphans can be reconciled out of band.
"""

from typing import Optional
import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    REGISTRY,
)


class MetricsCollector:
    """
    Collects and exposes Prometheus metrics for the plugin.

    Metrics include:
    - Lifecycle operation counters (by operation and status)
    - Lifecycle operation duration histogram
    - Canned policy registration counters
    - Orphaned user counter (create succeeded, bind and cleanup failed)
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        enabled: bool = True,
    ):
        """
        Initialize metrics collector.

        Args:
            registry: Prometheus registry (defaults to global REGISTRY)
            enabled: Whether metrics collection is enabled
        """
        self.registry = registry or REGISTRY
        self.enabled = enabled

        if not self.enabled:
            return

        self.operations_total = Counter(
            "miniocred_operations_total",
            "Total number of lifecycle operations",
            ["operation", "status"],
            registry=self.registry,
        )

        self.policy_registrations_total = Counter(
            "miniocred_policy_registrations_total",
            "Total number of canned policy registrations",
            ["status"],
            registry=self.registry,
        )

        self.orphaned_users_total = Counter(
            "miniocred_orphaned_users_total",
            "Users created whose policy binding and cleanup both failed",
            registry=self.registry,
        )

        self.operation_duration_seconds = Histogram(
            "miniocred_operation_duration_seconds",
            "Lifecycle operation duration in seconds",
            ["operation"],
            buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry,
        )

    def record_operation(self, operation: str, status: str) -> None:
        """
        Record a finished lifecycle operation.

        Args:
            operation: initialize, new_user, update_user or delete_user
            status: success or error
        """
        if not self.enabled:
            return

        self.operations_total.labels(operation=operation, status=status).inc()

    def record_policy_registration(self, status: str) -> None:
        if not self.enabled:
            return

        self.policy_registrations_total.labels(status=status).inc()

    def record_orphaned_user(self) -> None:
        if not self.enabled:
            return

        self.orphaned_users_total.inc()

    @contextmanager
    def track_operation(self, operation: str):
        """
        Context manager that times an operation and counts its outcome.

        Example:
            with metrics.track_operation("new_user"):
                await create()
        """
        if not self.enabled:
            yield
            return

        start_time = time.time()
        status = "success"
        try:
            yield
        except BaseException:
            status = "error"
            raise
        finally:
            self.operation_duration_seconds.labels(operation=operation).observe(
                time.time() - start_time
            )
            self.record_operation(operation, status)
