# backend/tests/utils/test_logging_setup.py
"""
Tests for log level parsing, JSON output and root logger setup.
"""

import json
import logging
import sys

import pytest

from portfolio_tracker.utils.logging import (
    JsonFormatter,
    RequestContextFilter,
    resolve_level,
    setup_logging,
)


def make_record(msg="Sold 4 INFY", **extra) -> logging.LogRecord:
    record = logging.LogRecord("portfolio_tracker.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    RequestContextFilter().filter(record)
    return record


class TestResolveLevel:
    @pytest.mark.parametrize("name,expected", [
        ("debug", logging.DEBUG),
        (" INFO ", logging.INFO),
        ("warn", logging.WARNING),
        ("Error", logging.ERROR),
    ])
    def test_known_levels(self, name, expected):
        assert resolve_level(name) == expected

    def test_unknown_level_raises(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            resolve_level("LOUD")


class TestJsonFormatter:
    def test_context_fields_promoted(self):
        record = make_record(portfolio_id=7, symbol="INFY")

        entry = json.loads(JsonFormatter().format(record))

        assert entry["portfolio_id"] == 7
        assert entry["symbol"] == "INFY"
        assert "extra" not in entry

    def test_other_attributes_go_to_extra(self):
        record = make_record(batch=["INFY", "TCS"], provider=object())

        entry = json.loads(JsonFormatter().format(record))

        assert entry["extra"]["batch"] == ["INFY", "TCS"]
        assert isinstance(entry["extra"]["provider"], str)

    def test_exception_included(self):
        try:
            raise RuntimeError("provider down")
        except RuntimeError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        entry = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: provider down" in entry["exception"]


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_handler_installed(self):
        setup_logging(level="DEBUG", log_format="json")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("yfinance").level == logging.WARNING

    def test_repeated_setup_replaces_handler(self):
        setup_logging(log_format="text")
        setup_logging(log_format="text")

        assert len(logging.getLogger().handlers) == 1
