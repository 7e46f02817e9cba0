"""Logging configuration for QuestSync.

All modules get their logger through ``get_logger(__name__)`` and attach
structured fields with ``extra=``. The formatter renders those fields as
``key=value`` pairs after the message.

Usage:
    from questsync.logging import setup_logging, get_logger

    setup_logging("DEBUG")

    logger = get_logger(__name__)
    logger.info("Found new commits", extra={"count": 2, "branch": "main"})
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from questsync.constants import LOG_DATE_FORMAT, LOG_FORMAT, LOG_FORMAT_NO_TIME, NOISY_LOGGERS

# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """Formatter that renders ``extra`` fields as ``key=value`` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        rendered = super().format(record)
        pairs = [
            f"{key}={value}"
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        ]
        if pairs:
            rendered = " | ".join([rendered, *pairs])
        return rendered


def _coerce_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(
    level: int | str = logging.INFO,
    *,
    include_timestamp: bool = True,
) -> None:
    """Send all QuestSync logging to stderr through ``StructuredFormatter``.

    The root logger ends up with exactly one handler, so calling this again
    (the CLI does, once per invocation) does not duplicate output. Chatty
    third-party loggers are capped at WARNING.

    Args:
        level: Level as an int or a name such as "DEBUG".
        include_timestamp: Prefix each line with the time.
    """
    numeric_level = _coerce_level(level)

    if include_timestamp:
        formatter = StructuredFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    else:
        formatter = StructuredFormatter(LOG_FORMAT_NO_TIME)

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(stream)
    root.setLevel(numeric_level)
    logging.getLogger("questsync").setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Context manager that stamps structured fields on every log record.

    Usage:
        with LogContext(install_root="/opt/questsync"):
            logger.info("Pulling update")
            # -> ... | install_root=/opt/questsync
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._old_factory: Any = None

    def __enter__(self) -> LogContext:
        old_factory = logging.getLogRecordFactory()
        self._old_factory = old_factory
        fields = self.fields

        def record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = old_factory(*args, **kwargs)
            for key, value in fields.items():
                setattr(record, key, value)
            return record

        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._old_factory is not None:
            logging.setLogRecordFactory(self._old_factory)
            self._old_factory = None
