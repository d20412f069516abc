"""
Logging setup for role-based edit control.

Records carry two correlation fields taken from context variables:
- command:  the CLI subcommand being run (set by role_control.cli)
- batch_id: the active resolution batch (set by ResolutionBatch)

Development output is a single human-readable line; production output is
one JSON object per record.

Usage:
    from role_control.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Override saved", extra={"user_id": user_id})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

batch_id_var: ContextVar[Optional[str]] = ContextVar("batch_id", default=None)
command_var: ContextVar[Optional[str]] = ContextVar("command", default=None)

DEV_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] cmd=%(command)s batch=%(batch_id)s %(message)s"

# Third-party loggers kept at WARNING unless debugging
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite")

# Attributes every LogRecord has; anything else came in through extra=
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
    "batch_id",
    "command",
}


def get_batch_id() -> Optional[str]:
    """Current resolution batch ID, if a batch is open."""
    return batch_id_var.get()


class CorrelationFilter(logging.Filter):
    """Stamp batch_id and command onto every record ("-" when unset)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.batch_id = batch_id_var.get() or "-"  # type: ignore[attr-defined]
        record.command = command_var.get() or "-"  # type: ignore[attr-defined]
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, extras included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in ("command", "batch_id"):
            value = getattr(record, field, None)
            if value and value != "-":
                payload[field] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or value is None:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            payload[key] = value

        return json.dumps(payload)


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Install a single stderr handler on the root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: 'production' selects JSON output
        debug: If True, use DEBUG level regardless of log_level
        stream: Output stream, stderr by default

    Returns:
        The installed handler
    """
    level = logging.DEBUG if debug else getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    # Repeated CLI invocations in one process must not stack handlers
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.addFilter(CorrelationFilter())
    if environment == "production":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
