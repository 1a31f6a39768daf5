"""Tests for structured JSON logging."""

import logging
import sys

import orjson

from utils.logging import JsonFormatter, setup_logging


def _record(msg: str = "Extraction started", **extra) -> logging.LogRecord:
    record = logging.LogRecord("apps.extractor", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_line_contains_core_fields() -> None:
    line = JsonFormatter().format(_record())
    payload = orjson.loads(line)

    assert payload["level"] == "INFO"
    assert payload["logger"] == "apps.extractor"
    assert payload["message"] == "Extraction started"
    assert payload["ts"].endswith("+00:00")


def test_extra_fields_are_included() -> None:
    payload = orjson.loads(JsonFormatter().format(_record(tenant_id="tenant-001", events=3)))

    assert payload["tenant_id"] == "tenant-001"
    assert payload["events"] == 3
    assert "levelno" not in payload
    assert "args" not in payload


def test_non_serializable_extra_falls_back_to_str() -> None:
    payload = orjson.loads(JsonFormatter().format(_record(path=object())))
    assert payload["path"].startswith("<object object")


def test_exception_is_rendered() -> None:
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    payload = orjson.loads(JsonFormatter().format(record))
    assert "ValueError: boom" in payload["exc_info"]


def test_setup_logging_replaces_root_handlers() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("DEBUG", "json")
        setup_logging("WARNING", "text")

        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
