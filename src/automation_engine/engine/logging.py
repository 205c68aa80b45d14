"""Structured logging configuration.

Every record becomes one JSON object on stderr. The engine's correlation keys
(`workflow_id`, `execution_id`, `step_id`) are lifted to the top level so log
lines for one run can be filtered without digging into `extra`. Execution
lifecycle lines (the daily `.log` files) are written separately by
:mod:`automation_engine.engine.execution_log`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

CORRELATION_KEYS: tuple[str, ...] = ("workflow_id", "execution_id", "step_id")

# Attributes every LogRecord carries; anything else came in through `extra=`.
_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if key in CORRELATION_KEYS:
                payload[key] = value
            else:
                extra[key] = value
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    """Install the JSON handler on the root logger, replacing any others.

    Records go to stderr so stdout stays free for command output.
    """

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
    root.setLevel(level.upper())

    # The observer threads are chatty at DEBUG.
    logging.getLogger("watchdog").setLevel(max(root.level, logging.INFO))
