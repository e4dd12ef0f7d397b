"""Log output for the engine.

Modules log through ``logging.getLogger(__name__)`` and attach run details
(``session_id``, ``task_id``, ``status``, ``execution_time_ms``...) with
``extra=``. :class:`JsonFormatter` emits one JSON object per line with those
details grouped under ``"extra"``, which is what log shippers index on.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, TextIO

# Everything a bare record carries; anything else on a record came from ``extra=``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Provider SDKs log each HTTP request at INFO.
_CHATTY_LIBRARIES = ("httpx", "openai", "urllib3")


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if extra := _extra_fields(record):
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    level: str, *, json_output: bool = True, stream: TextIO | None = None
) -> None:
    """Replace the root handlers with a single stream handler.

    Output goes to stdout unless ``stream`` is given; the CLI passes stderr
    so that its JSON results stay machine-readable.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        JsonFormatter() if json_output else logging.Formatter(_TEXT_FORMAT, "%H:%M:%S")
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(max(root.level, logging.WARNING))
