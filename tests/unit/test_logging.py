from __future__ import annotations

import json
import logging
import sys

from livestore.utils.logging import JsonFormatter, _json_formatter

EXPECTED_ROWS = 2
EXPECTED_WORKERS = 4


def _record(msg: str = "hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.rows = EXPECTED_ROWS
    record.table = "contacts"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["thread"] == record.threadName
    assert payload["rows"] == EXPECTED_ROWS
    assert payload["table"] == "contacts"
    assert "pathname" not in payload


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"write_workers": EXPECTED_WORKERS}

    payload = json.loads(_json_formatter(record))

    assert payload["write_workers"] == EXPECTED_WORKERS


def test_json_formatter_renders_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record("[WRITE FAILED] insert", exc_info=sys.exc_info())

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "[WRITE FAILED] insert"
    assert "RuntimeError: boom" in payload["exc_info"]


def test_json_formatter_stringifies_unknown_values() -> None:
    record = _record()
    record.contact = object()

    payload = json.loads(_json_formatter(record))

    assert payload["contact"].startswith("<object object")
