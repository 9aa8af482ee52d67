"""Logging setup for blockflow entry points.

Library modules only create module loggers; handlers are installed here,
once, by whichever entry point owns the process (the CLI, or an embedding
application that calls :func:`configure_logging`).

With ``structured_logging`` enabled each record is emitted as one JSON
object per line::

    {
        "timestamp": "2025-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "blockflow.executor.orchestrator",
        "message": "Block b2 succeeded -> temp_b2",
        "block_id": "b2",              // present when passed via extra=
        "exc_info": "Traceback ..."    // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import UTC, datetime
from typing import Any

from blockflow.config import Settings

_TEXT_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

# Extra attributes copied into the JSON payload when present on a record.
_EXTRA_FIELDS: tuple[str, ...] = ("block_id", "run_id", "triggered_by")


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: Settings) -> None:
    """Replace the root handlers according to *settings*.

    Output goes to *stderr* so that machine-readable command output on
    *stdout* is never mixed with log lines.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    if settings.structured_logging:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG if settings.debug else settings.log_level)
