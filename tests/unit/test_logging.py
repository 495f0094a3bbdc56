"""Tests for the structured logging helpers."""

from __future__ import annotations

import logging

import pytest

from backend.app.infra.logging import StructuredFormatter, configure_logging, get_logger

pytestmark = [pytest.mark.infra]


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "backend.app.test", logging.INFO, __file__, 10, "entry_created", None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_sorted_extra_fields():
    formatter = StructuredFormatter("%(levelname)s %(message)s")

    rendered = formatter.format(_record(reference="images/a.jpg", entry_id="e-1"))

    assert rendered == "INFO entry_created entry_id='e-1' reference='images/a.jpg'"


def test_formatter_without_extra_is_plain():
    formatter = StructuredFormatter("%(message)s")

    assert formatter.format(_record()) == "entry_created"


def test_configure_logging_sets_backend_level():
    configure_logging({"level": "debug"})

    logger = logging.getLogger("backend")
    assert logger.level == logging.DEBUG
    assert isinstance(logger.handlers[0].formatter, StructuredFormatter)
    assert get_logger("backend.app.x").getEffectiveLevel() == logging.DEBUG

    configure_logging({"level": "INFO"})
