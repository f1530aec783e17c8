"""Unit tests for structured logging configuration."""

from __future__ import annotations

import json
import logging

from logging_config import (
    ContextFilter,
    JsonFormatter,
    PlainFormatter,
    bind_context,
    clear_context,
    configure_logging,
    get_context,
    log_context,
)


def _record(message: str = "Marker fired: marker_id=%s", *args) -> logging.LogRecord:
    """Build a log record passed through the context filter."""
    record = logging.LogRecord("markers.service", logging.INFO, __file__, 1, message, args or ("m1",), None)
    ContextFilter().filter(record)
    return record


def test_log_context_is_scoped_to_block() -> None:
    """Context bound in a block is removed when the block exits."""
    clear_context()
    bind_context(service="magic-markers", ignored=None)

    with log_context({"project_id": "p1", "marker_id": 7}):
        assert get_context() == {"service": "magic-markers", "project_id": "p1", "marker_id": "7"}

    assert get_context() == {"service": "magic-markers"}
    clear_context("service")
    assert get_context() == {}


def test_json_formatter_includes_context() -> None:
    """JSON output carries the message and bound context fields."""
    clear_context()
    with log_context({"project_id": "p1"}):
        payload = json.loads(JsonFormatter().format(_record()))

    assert payload["message"] == "Marker fired: marker_id=m1"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "markers.service"
    assert payload["project_id"] == "p1"


def test_plain_formatter_appends_sorted_context() -> None:
    """Plain output appends context as sorted key=value pairs."""
    clear_context()
    with log_context({"project_id": "p1", "marker_id": "m1"}):
        line = PlainFormatter().format(_record())

    assert line.endswith("Marker fired: marker_id=m1 marker_id=m1 project_id=p1")


def test_configure_logging_installs_single_handler() -> None:
    """Repeated configuration replaces the root handler instead of stacking."""
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level
    try:
        configure_logging(level="debug", json_output=True, service="magic-markers")
        configure_logging(level="info", json_output=False)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, PlainFormatter)
        assert root.level == logging.INFO
        assert get_context()["service"] == "magic-markers"
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)
        clear_context()
