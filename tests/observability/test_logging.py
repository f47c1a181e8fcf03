"""Tests for shared observability logging."""

import logging
import time

import pytest

from debt_tracker_client.observability.logging import (
    LoggerEventRecorder,
    format_fields,
    get_logger,
)


def test_get_logger_formats_utc_timestamps(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fixed = time.struct_time((2020, 1, 2, 3, 4, 5, 3, 2, 0))

    def fake_gmtime(_: float | None = None) -> time.struct_time:
        return fixed

    monkeypatch.setattr(time, "gmtime", fake_gmtime)

    name = "debt_tracker_client.test.logging"
    logger = get_logger(name)
    logger.info("Hello")

    captured = capsys.readouterr()
    assert "2020-01-02T03:04:05+0000 INFO debt_tracker_client.test.logging: Hello" in captured.err


def test_get_logger_is_singleton_per_name() -> None:
    name = "debt_tracker_client.test.logging.singleton"
    logger = get_logger(name)
    logger_again = get_logger(name)

    assert logger is logger_again
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_format_fields_sorts_keys_and_skips_none() -> None:
    rendered = format_fields({"status": 200, "path": "/debts", "error_code": None})

    assert rendered == "path=/debts status=200"


def test_event_recorder_writes_structured_line(capsys: pytest.CaptureFixture[str]) -> None:
    recorder = LoggerEventRecorder("debt_tracker_client.test.events")

    recorder.record(logging.WARNING, "api.call.failed", {"kind": "timeout", "attempts": 3})
    recorder.record(logging.INFO, "auth.token.refreshed", {})
    recorder.record(logging.DEBUG, "below.threshold", {"ignored": True})

    err = capsys.readouterr().err
    assert "WARNING debt_tracker_client.test.events: api.call.failed attempts=3 kind=timeout" in err
    assert "auth.token.refreshed\n" in err
    assert "below.threshold" not in err
