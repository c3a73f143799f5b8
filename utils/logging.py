"""
Logging setup shared by the dashboard service and the client library.

Two output modes, selected by AppConfig.log_format (APP_LOG_FORMAT):

    text  — "%(asctime)s %(levelname)s %(name)s %(message)s"
    json  — one JSON object per line, merging selected ``extra=`` fields

Usage::

    from utils.logging import configure_logging
    configure_logging("json", "INFO")
    logging.getLogger(__name__).info("fetch", extra={"namespace": "presupuesto"})
"""

from __future__ import annotations

import json
import logging

# Extra attributes copied into JSON records when present.
_EXTRA_FIELDS = (
    "namespace", "operation", "query_key", "attempt", "status",
    "method", "path", "duration_ms", "request_id",
)

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


def configure_logging(log_format: str = "text", level: str | int = "INFO") -> logging.Handler:
    """Install a single stream handler on the root logger.

    Existing root handlers are replaced so repeated calls (tests, reloads)
    never duplicate output.

    Args:
        log_format: "text" or "json".
        level: Level name or number for the root logger.

    Returns:
        The installed handler.
    """
    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    logging.basicConfig(handlers=[handler], level=level, force=True)
    return handler
