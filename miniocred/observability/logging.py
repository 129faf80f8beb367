"""
Structured logging for miniocred.

Provides JSON-formatted logs and a filter that masks configured secrets
before a record reaches any handler.
"""

import json
import logging
import sys
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Optional


_RESERVED_ATTRS = frozenset(
    [
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    ]
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in JSON format with standard fields:
    - timestamp: ISO 8601 timestamp
    - level: Log level
    - logger: Logger name
    - message: Log message
    - plugin: Name of the plugin
    - extra: Additional fields from log record
    """

    def __init__(self, plugin_name: str = "miniocred", *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.plugin_name = plugin_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "plugin": self.plugin_name,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            log_data["exception"] = record.exc_text

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)


class SecretRedactionFilter(logging.Filter):
    """
    Replaces secret values in log records with placeholders.

    ``secrets`` is a callable returning a mapping of secret value to
    replacement, read on every record so configuration changes apply
    immediately.
    """

    def __init__(self, secrets: Callable[[], Mapping[str, str]]):
        super().__init__()
        self._secrets = secrets

    def filter(self, record: logging.LogRecord) -> bool:
        secrets = {k: v for k, v in self._secrets().items() if k}
        if not secrets:
            return True

        message = record.getMessage()
        for secret, replacement in secrets.items():
            message = message.replace(secret, replacement)
        record.msg = message
        record.args = None

        if record.exc_info and record.exc_info[1] is not None:
            text = self._format_exception(record)
            for secret, replacement in secrets.items():
                text = text.replace(secret, replacement)
            record.exc_text = text
            record.exc_info = None
        return True

    @staticmethod
    def _format_exception(record: logging.LogRecord) -> str:
        return logging.Formatter().formatException(record.exc_info)


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    secrets: Optional[Callable[[], Mapping[str, str]]] = None,
    stream=None,
) -> logging.Logger:
    """
    Configure the ``miniocred`` logger hierarchy.

    Args:
        level: Log level name
        fmt: ``json`` or ``text``
        secrets: Optional callable returning secret -> placeholder mapping
        stream: Output stream (defaults to stderr)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("miniocred")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    if secrets is not None:
        handler.addFilter(SecretRedactionFilter(secrets))

    logger.addHandler(handler)
    logger.propagate = False
    return logger
