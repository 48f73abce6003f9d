"""Structured logging setup for Stampede."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

# Record attributes passed via ``extra=`` that the JSON formatter keeps.
_EXTRA_FIELDS = ("completed", "total", "worker_id", "ticket", "status_code")


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter.

    Always emits timestamp, level, logger and message. Engine fields passed
    through ``extra=`` (progress counters, worker ids, ticket indexes) are
    copied as top-level keys so log shippers can filter on them.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the ``stampede`` logger.

    A stderr handler is attached on the first call only; later calls just
    move the level, so the CLI and the runner can both call this safely.

    Args:
        level: Logging level. Defaults to INFO.
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        The configured ``stampede`` logger.
    """
    logger = logging.getLogger("stampede")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``stampede.<name>``, e.g. ``get_logger("engine.pool")``."""
    return logging.getLogger(f"stampede.{name}")
