"""Logging setup for loadburst.

All loggers live under the ``loadburst`` namespace. ``setup_logging`` is
called once by the runner or the CLI; library code only ever calls
``get_logger``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing import TextIO

_ROOT_LOGGER = "loadburst"
_TEXT_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_OWNED_MARK = "_loadburst_handler"

# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter.

    Keys: timestamp, level, logger, message, plus any ``extra=`` fields
    (for example ``attempt`` or ``state``) and ``exception`` when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure and return the ``loadburst`` root logger.

    Repeated calls replace the handler installed by the previous call, so
    the CLI and the runner can both call this without duplicating output.

    Args:
        level: Logging level, e.g. ``logging.DEBUG``.
        json_format: Emit one JSON object per line instead of plain text.
        stream: Destination stream. Defaults to ``sys.stderr`` so that
            JSON reports on stdout stay machine-readable.

    Returns:
        The configured ``loadburst`` logger.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)

    for existing in list(logger.handlers):
        if getattr(existing, _OWNED_MARK, False):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    setattr(handler, _OWNED_MARK, True)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt=_DATE_FORMAT))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger, e.g. ``get_logger("engine.dispatcher")``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")
