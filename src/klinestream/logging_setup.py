"""
Logging Setup Module
====================

JSON logging to stdout, one object per line.

Log format:
    {
        "timestamp": "2024-01-27T12:00:00.000+00:00",
        "level": "INFO",
        "logger": "klinestream.session",
        "module": "session",
        "message": "kline_tick",
        "ch": "market.btcusdt.kline.1min",
        "tick": {"id": 1700000000, "open": 30000.0, ...}
    }
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

# LogRecord attributes that are not user-supplied "extra" fields
STANDARD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
})


class JsonFormatter(logging.Formatter):
    """
    Formats log records as JSON objects.

    Fixed fields are timestamp (record creation time, UTC), level, logger,
    module and message; extra fields follow, then exception text if any.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in STANDARD_ATTRS and not key.startswith("_"):
                log_entry[key] = self._make_serializable(value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(log_entry).decode("utf-8")

    def _make_serializable(self, value: Any) -> Any:
        """Recursively coerce values orjson cannot encode into strings."""
        if isinstance(value, dict):
            return {str(k): self._make_serializable(v) for k, v in value.items()}
        elif isinstance(value, (list, tuple)):
            return [self._make_serializable(v) for v in value]
        elif isinstance(value, (str, int, float, bool, type(None))):
            return value
        else:
            return str(value)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure application logging.

    Replaces any root handlers with a single JSON handler on stdout.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.setLevel(numeric_level)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    # Reduce noise from third-party libraries
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
