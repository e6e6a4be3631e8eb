"""
Central logging configuration for the progression core.

Log calls attach domain context through `extra=`; both formatters render it:

- production: one JSON object per line
- development: a readable line with the context appended as key=value pairs

Request and learner ids are bound by the request context middleware and added to
every record by CorrelationFilter.

Usage:
    from mastery_core.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Level advanced", extra={"subject_id": subject_id, "to_level": "Q"})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
learner_id_var: ContextVar[Optional[str]] = ContextVar("learner_id", default=None)

_CORRELATION_FIELDS = ("request_id", "learner_id")

# Attributes every LogRecord carries; anything else came in through extra=
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", *_CORRELATION_FIELDS}

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "openai", "aiosqlite")


def extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Context passed via extra= on the log call."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and value is not None
    }


class CorrelationFilter(logging.Filter):
    """Stamp request_id and learner_id from the current context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"  # type: ignore[attr-defined]
        record.learner_id = learner_id_var.get() or "-"  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _CORRELATION_FIELDS:
            value = getattr(record, field, "-")
            if value != "-":
                entry[field] = value
        for key, value in extra_fields(record).items():
            entry[key] = value if _is_json_safe(value) else str(value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class DevFormatter(logging.Formatter):
    """Human-readable lines for local runs and test output."""

    def __init__(self):
        super().__init__(
            "%(asctime)s %(levelname)-5s [%(name)s] req=%(request_id)s learner=%(learner_id)s %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        for field in _CORRELATION_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, "-")
        line = super().format(record)
        context = extra_fields(record)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def _is_json_safe(value: Any) -> bool:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return False
    return True


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: 'production' selects JSON output
        debug: If True, use DEBUG level regardless of log_level
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(CorrelationFilter())
    handler.setFormatter(JsonFormatter() if environment == "production" else DevFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    # Reloads call this again; replace rather than stack handlers
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
