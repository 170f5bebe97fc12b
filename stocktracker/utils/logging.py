# stocktracker/utils/logging.py
"""
Root logger setup.

setup_logging() is called once from main.py before the app is built. Level
and format come from LOG_LEVEL and LOG_FORMAT. Every record gets the
request's correlation_id, and yfinance plus the HTTP client stack are
turned down to WARNING.

Levels as used by the services:
    DEBUG   - Cache hits, cross-rate derivations, per-holding numbers
    INFO    - Provider fetches, snapshot persistence, backfill/refresh results
    WARNING - Fallbacks (stale price, nearest-date FX), oversells
    ERROR   - A holding or transaction that could not be processed
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from stocktracker.config import settings
from stocktracker.utils.context import get_correlation_id

# =============================================================================
# CONSTANTS
# =============================================================================

TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

NO_CORRELATION_ID = "-"

NOISY_LOGGERS = [
    "yfinance",
    "peewee",
    "urllib3",
    "requests",
    "httpx",
    "httpcore",
    "asyncio",
]

# LogRecord attributes that never go into the JSON "extra" block
_RESERVED_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "correlation_id", "message", "taskName",
})

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class CorrelationIdFilter(logging.Filter):
    """Attach the current correlation ID to each record as `correlation_id`."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line.

    Output format:
    {
        "timestamp": "2024-01-15T10:30:00.123+00:00",
        "level": "WARNING",
        "logger": "stocktracker.services.price_service",
        "correlation_id": "abc-123",
        "message": "Serving stale price for BP.L",
        "extra": {...}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_ATTRS
        }
        if extra:
            # default=str covers Decimal and date values passed via extra=
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Log level name. Defaults to settings.log_level.
        log_format: 'text' or 'json'. Defaults to settings.log_format.
        suppress_noisy_loggers: Raise third-party loggers to WARNING.
    """
    level_name = level or settings.log_level
    format_type = (log_format or settings.log_format).lower()

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(_get_log_level(level_name))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level_name}, format={format_type}"
    )


def _get_log_level(level_str: str) -> int:
    """Map a level name (case-insensitive, WARN allowed) to its constant."""
    key = level_str.upper().strip()
    if key not in _LEVELS:
        raise ValueError(
            f"Invalid log level '{level_str}', expected one of {', '.join(_LEVELS)}"
        )
    return _LEVELS[key]

