from __future__ import annotations

import logging

from app.core.logging import _ContainerFormatter, setup_logging


def _record(level: int, msg: str = "hello", lineno: int = 1) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="shopify.py",
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_quiets_httpx_at_debug() -> None:
    # httpx logs full outbound URLs at INFO.
    setup_logging("debug")
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("uvicorn").level == logging.WARNING


def test_setup_logging_allows_third_party_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("httpx").level == logging.ERROR


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(_record(logging.INFO))
    assert "hello" in output
    assert "[shopify.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(
        _record(logging.WARNING, "Callback rejected", lineno=42)
    )
    assert "Callback rejected" in output
    assert "[shopify.py:42]" in output


def test_formatter_timestamp_has_milliseconds() -> None:
    fmt = _ContainerFormatter()
    record = _record(logging.INFO)
    record.msecs = 7
    stamp = fmt.formatTime(record, fmt.datefmt)
    assert ".007" in stamp
