"""
miniocred observability layer.

- Prometheus metrics for lifecycle operations and orphaned users
- Structured JSON logging with secret redaction
"""

from miniocred.observability.metrics import MetricsCollector
from miniocred.observability.logging import (
    JSONFormatter,
    SecretRedactionFilter,
    configure_logging,
)

__all__ = [
    "MetricsCollector",
    "JSONFormatter",
    "SecretRedactionFilter",
    "configure_logging",
]
