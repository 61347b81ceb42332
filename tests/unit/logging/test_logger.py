# tests/unit/logging/test_logger.py - v2
"""Tests for logging/logger.py - logger factory, formatters and setup."""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from pagedigest.logging.context import set_phase, set_run_context
from pagedigest.logging.logger import JsonFormatter, TextFormatter, get_logger, parse_size, setup_logging


def _record(msg: str = "Hello", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test", level=level, pathname="", lineno=0, msg=msg, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_run_context("tab-3", "run1", "OpenAI")
        set_phase("one_shot")
        parsed = json.loads(JsonFormatter().format(_record("test msg")))
        assert parsed["context"] == {
            "session_id": "tab-3",
            "run_id": "run1",
            "provider": "OpenAI",
            "phase": "one_shot",
        }

    def test_extra_data(self):
        parsed = json.loads(JsonFormatter().format(_record(data={"calls": 3})))
        assert parsed["data"] == {"calls": 3}

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        parsed = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in parsed["exception"]


class TestTextFormatter:
    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output
        assert "session=" not in output

    def test_session_and_phase(self):
        set_run_context("tab-3", "run1")
        set_phase("rolling_context")
        output = TextFormatter().format(_record())
        assert "[session=tab-3]" in output
        assert "(rolling_context)" in output


class TestParseSize:
    @pytest.mark.parametrize(
        "text, expected",
        [("10MB", 10 * 1024**2), ("512kb", 512 * 1024), ("1 GB", 1024**3)],
    )
    def test_valid(self, text, expected):
        assert parse_size(text) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_size("ten megs")


class TestGetLogger:
    def test_returns_logger(self):
        assert get_logger("test_module").name == "pagedigest.test_module"


class TestSetupLogging:
    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json")
        root = logging.getLogger("pagedigest")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("pagedigest")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_repeated_setup_does_not_stack_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("pagedigest").handlers) == 1

    def test_file_rotation(self, tmp_path):
        log_file = tmp_path / "logs" / "pagedigest.log"
        setup_logging(log_file=log_file, rotation="1MB", retention=2)
        root = logging.getLogger("pagedigest")
        file_handlers = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        try:
            assert len(file_handlers) == 1
            assert file_handlers[0].maxBytes == 1024**2
            assert file_handlers[0].backupCount == 2
            assert log_file.parent.is_dir()
        finally:
            for handler in file_handlers:
                handler.close()
            root.handlers.clear()
