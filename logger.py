"""Logging setup for the Blog API.

Provides:
- `set_request_id` for the per-request correlation id
- `JSONFormatter` to render records as single-line JSON (production)
- `configure_logging` to attach a stdout handler chosen by environment
"""

import json
import logging
import sys
from contextvars import ContextVar

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

# Keys passed through `extra=` that are copied into JSON records.
CONTEXT_FIELDS = ("operation", "filter", "method", "path", "status", "duration_ms")

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def set_request_id(rid: str | None) -> None:
    """Set/clear the correlation request id used in log records."""
    _request_id.set(rid)


class JSONFormatter(logging.Formatter):
    """Format log records as compact JSON with timestamp and optional context."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "level": record.levelname,
            "ts": round(record.created, 3),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        rid = _request_id.get()
        if rid:
            base["request_id"] = rid
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                base[key] = getattr(record, key)
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        # ObjectIds in filters are rendered with str()
        return json.dumps(base, ensure_ascii=False, default=str)


def configure_logging(env: str = "development", level: int | str = "INFO") -> logging.Logger:
    """Configure root logging to stdout.

    Args:
        env: "production" selects the JSON formatter, anything else the
            human-readable console format.
        level: Logging level as int or string (e.g., logging.INFO or "INFO").

    Returns:
        The application logger, named "blog".
    """
    handler = logging.StreamHandler(sys.stdout)
    if env == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, handlers=[handler], force=True)
    return logging.getLogger("blog")
