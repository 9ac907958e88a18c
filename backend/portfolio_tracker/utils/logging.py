# backend/portfolio_tracker/utils/logging.py
"""
Logging setup for the tracker.

One stdout handler on the root logger. Every record is stamped with the
request's correlation id and authenticated user (see utils/context.py),
so a price tick or a sell can be followed from the HTTP request down to the
valuation engine.

    LOG_FORMAT=text   2024-01-15 10:30:00 | INFO | 6f1c... | 42 | portfolio_tracker.services... | Sold 4 INFY
    LOG_FORMAT=json   one JSON object per line, for log shippers

Levels used across the services:
    INFO     holdings added/sold, prices applied, alerts fired, job runs
    WARNING  oversell clamped, provider budget exhausted, job skipped
    ERROR    provider failures, failed job runs
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from portfolio_tracker.config import settings
from portfolio_tracker.utils.context import get_correlation_id, get_user_id

TEXT_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(user_id)s | %(name)s | %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Placeholders for records emitted outside a request (job runs, scripts)
NO_CORRELATION_ID = "no-correlation-id"
ANONYMOUS_USER = "anonymous"

# Domain identifiers promoted to top-level JSON keys when passed via extra=
CONTEXT_FIELDS = ("portfolio_id", "holding_id", "symbol", "alert_id")

# yfinance logs every HTTP round-trip at INFO
NOISY_LOGGERS = ("yfinance", "peewee", "urllib3", "requests", "httpx", "httpcore")

_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "correlation_id", "user_id"}


class RequestContextFilter(logging.Filter):
    """Attach correlation_id and user_id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        user_id = get_user_id()
        record.user_id = ANONYMOUS_USER if user_id is None else str(user_id)
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Keys: timestamp (record creation time, UTC), level, logger,
    correlation_id, user_id, message, any of CONTEXT_FIELDS present on the
    record, exception (when exc_info is set) and extra (all other custom
    attributes, stringified if not JSON-serializable).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "user_id": getattr(record, "user_id", ANONYMOUS_USER),
            "message": record.getMessage(),
        }

        extra: dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS:
                continue
            target = entry if key in CONTEXT_FIELDS else extra
            target[key] = value if _is_json_safe(value) else str(value)

        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


def _is_json_safe(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def resolve_level(name: str) -> int:
    """
    Map a level name (case-insensitive, WARN accepted) to its number.

    Raises:
        ValueError: For anything logging does not know
    """
    normalized = name.strip().upper()
    if normalized == "WARN":
        normalized = "WARNING"
    level = logging.getLevelName(normalized)
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: '{name}'")
    return level


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Install the stdout handler on the root logger.

    Safe to call more than once: existing root handlers are replaced.

    Args:
        level: Overrides LOG_LEVEL
        log_format: "text" or "json"; overrides LOG_FORMAT
    """
    level_name = level or settings.log_level
    format_name = (log_format or settings.log_format).lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    if format_name == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolve_level(level_name))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level_name}, format={format_name}")
