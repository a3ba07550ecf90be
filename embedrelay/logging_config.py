"""Structured JSON logging configuration.

Configures Python logging to emit JSON-formatted log entries with the
required fields timestamp, level, logger and message, plus request_id while
an API call is being handled. Session-specific fields are added
contextually through ``extra``: session_id, endpoint_id and event for
lifecycle transitions; retry_attempts and error_reason for load failures;
duration_ms for load completions.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from embedrelay.middleware.request_id import current_request_id

# Optional attributes copied from the record when a caller passes them in ``extra``
_CONTEXT_FIELDS: tuple[str, ...] = (
    "session_id",
    "endpoint_id",
    "event",
    "retry_attempts",
    "duration_ms",
    "error_reason",
)


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON with structured fields.

    Each entry contains at minimum: timestamp, level, logger, message.
    Additional fields can be attached via the ``extra`` dict on log calls.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or current_request_id.get()
        if request_id is not None:
            entry["request_id"] = request_id

        for name in _CONTEXT_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)

        if "error_reason" in entry:
            entry["error_reason"] = str(entry["error_reason"])

        # Exception info
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure the root logger.

    Parameters
    ----------
    level:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    json_format:
        Emit JSON lines when true, plain ``%(asctime)s`` lines otherwise.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    root.addHandler(handler)
