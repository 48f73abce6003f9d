"""Tests for logging setup."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from stampede._internal.logging import _JsonFormatter, get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def clean_logger() -> Iterator[logging.Logger]:
    """Strip handlers from the stampede logger before and after a test."""
    logger = logging.getLogger("stampede")
    saved = list(logger.handlers)
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="stampede.metrics.aggregator",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Progress: %d/%d requests completed",
        args=(100, 200),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSetupLogging:
    def test_installs_single_handler(self, clean_logger: logging.Logger):
        setup_logging(logging.DEBUG)
        setup_logging(logging.WARNING)

        assert len(clean_logger.handlers) == 1
        assert clean_logger.level == logging.WARNING
        assert clean_logger.handlers[0].level == logging.WARNING
        assert clean_logger.propagate is False

    def test_json_format(self, clean_logger: logging.Logger):
        setup_logging(json_format=True)
        assert isinstance(clean_logger.handlers[0].formatter, _JsonFormatter)

    def test_get_logger_namespace(self):
        assert get_logger("engine.pool").name == "stampede.engine.pool"


class TestJsonFormatter:
    def test_base_fields(self):
        entry = json.loads(_JsonFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "stampede.metrics.aggregator"
        assert entry["message"] == "Progress: 100/200 requests completed"
        assert "timestamp" in entry
        assert "completed" not in entry

    def test_engine_extras_are_copied(self):
        entry = json.loads(_JsonFormatter().format(_record(completed=100, total=200)))
        assert entry["completed"] == 100
        assert entry["total"] == 200
