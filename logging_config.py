"""
logging_config.py - Centralized logging configuration.

Every module logs pipe-delimited event lines through a named logger:

    claim_verdict | claim_id=17 | valid=False | amount_lost=None

With `--log-json` each record becomes one JSON object per line, with the
leading event name split out so aggregators can filter on it:

    {"timestamp": "...", "level": "INFO", "logger": "validate",
     "event": "claim_verdict", "message": "claim_verdict | claim_id=17 | ..."}

`setup_logging` is called once by the CLI / API entry points.
"""

from __future__ import annotations

import functools
import json
import logging
import sys
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

PLAIN_FORMAT = "%(asctime)s [%(name)-16s] %(levelname)-7s %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Third-party loggers that are chatty at INFO.
QUIET_LOGGERS = ("urllib3", "httpx", "multipart")


def event_name(message: str) -> Optional[str]:
    """Return the leading event token of a pipe-delimited log line, if any."""
    head, sep, _ = message.partition(" | ")
    head = head.strip()
    if not sep or not head or " " in head or "=" in head:
        return None
    return head


class JsonLineFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def __init__(self, datefmt: str = DATE_FORMAT) -> None:
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "event": event_name(message),
            "message": message,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(
    level: int = logging.INFO,
    json_format: bool = False,
) -> None:
    """Configure root logger with consistent formatting.

    Args:
        level: Logging level.
        json_format: If True, emit one JSON object per line.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if json_format:
        formatter: logging.Formatter = JsonLineFormatter()
    else:
        formatter = logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)


def graceful(default_factory: Callable[[], T], log_level: int = logging.ERROR):
    """Decorator that logs any exception and returns a default value instead.

    Used on fire-and-forget side effects (result sink writes) whose failure
    must not halt the batch.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (KeyboardInterrupt, SystemExit):
                raise
            except Exception as exc:
                fallback = default_factory()
                logger = logging.getLogger(func.__module__)
                logger.log(
                    log_level,
                    "graceful_fallback | func=%s | error_type=%s | error=%s | fallback=%r",
                    func.__qualname__,
                    type(exc).__name__,
                    exc,
                    fallback,
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
                return fallback

        return wrapper

    return decorator
