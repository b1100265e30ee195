"""
Logging for the notification engine.

Every module logs through ``get_logger(__name__)``. Loggers share one stderr
handler whose level and format come from NotifySettings (NOTIFY_LOG_LEVEL,
the older NOTIFY_DEBUG switch, and NOTIFY_LOG_JSON for one JSON object per
line with ``extra`` fields such as user_id or job kind).

Example:
    from social_notify.core.logging import get_logger

    logger = get_logger(__name__)
    logger.debug("Classifying notification")
    logger.info("Notification created", extra={"user_id": user_id})
    logger.warning("User not found")
    logger.error("Push delivery failed", exc_info=True)
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from .config import get_settings

# LogRecord attributes that are not "extra" fields
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "exc_info",
        "exc_text",
        "stack_info",
        "message",
        "taskName",
    }
)


def _get_log_level() -> int:
    """Level from NotifySettings."""
    return get_settings().log_level_int


def _is_json_output() -> bool:
    """NOTIFY_LOG_JSON toggle."""
    return get_settings().log_json


class NotifyFormatter(logging.Formatter):
    """
    Render records as ``[NOTIFY LEVEL] [module] message`` or as JSON.

    JSON output carries the UTC timestamp, logger name and any ``extra``
    keys passed by the caller.
    """

    def __init__(self, json_output: bool = False) -> None:
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).isoformat(timespec="seconds")

        if self.json_output:
            return self._format_json(record, timestamp)
        return self._format_text(record)

    def _format_text(self, record: logging.LogRecord) -> str:
        module = record.name.split(".")[-1] if "." in record.name else record.name

        msg = f"[NOTIFY {record.levelname}] [{module}] {record.getMessage()}"

        if record.exc_info:
            exc_text = "".join(traceback.format_exception(*record.exc_info))
            msg += f"\n{exc_text}"

        return msg

    def _format_json(self, record: logging.LogRecord, timestamp: str) -> str:
        log_data: dict[str, Any] = {
            "timestamp": timestamp,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(log_data, default=str)


# Loggers handed out by get_logger
_loggers: dict[str, logging.Logger] = {}
_handler: Optional[logging.Handler] = None


def _get_handler() -> logging.Handler:
    """Get or create the shared stderr handler."""
    global _handler
    if _handler is None:
        _handler = logging.StreamHandler(sys.stderr)
        _handler.setFormatter(NotifyFormatter(json_output=_is_json_output()))
    return _handler


def get_logger(name: str) -> logging.Logger:
    """Return the cached logger for ``name``, attached to the shared handler."""
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    logger.setLevel(_get_log_level())
    logger.addHandler(_get_handler())
    logger.propagate = False

    _loggers[name] = logger
    return logger


def set_log_level(level: int) -> None:
    """Change the level of every logger handed out so far."""
    for logger in _loggers.values():
        logger.setLevel(level)


def reset_logging() -> None:
    """
    Undo get_logger configuration (used between tests).

    Restores propagate=True and level=NOTSET on every social_notify.* logger
    and detaches the shared handler, so pytest's caplog can capture records.
    """
    global _handler

    manager = logging.Logger.manager
    for name in list(manager.loggerDict.keys()):
        if name.startswith("social_notify"):
            logger_or_placeholder = manager.loggerDict[name]
            if isinstance(logger_or_placeholder, logging.Logger):
                logger_or_placeholder.propagate = True
                logger_or_placeholder.setLevel(logging.NOTSET)

    for logger in _loggers.values():
        if _handler is not None:
            logger.removeHandler(_handler)

    _handler = None
