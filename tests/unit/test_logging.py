"""Unit tests for structured logging."""

from __future__ import annotations

import io
import json
import logging

import pytest

from hr_airdrop_orchestrator.orchestrator.logging import JsonFormatter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="hr_airdrop_orchestrator.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Tool %s ran",
        args=("create_token",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields() -> None:
    payload = json.loads(JsonFormatter().format(_record(tool="create_token", count=3)))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "hr_airdrop_orchestrator.test"
    assert payload["message"] == "Tool create_token ran"
    assert payload["extra"] == {"tool": "create_token", "count": 3}


def test_json_formatter_redacts_secrets() -> None:
    payload = json.loads(JsonFormatter().format(_record(private_key="abc", api_key="sk_x")))

    assert payload["extra"] == {"private_key": "***", "api_key": "***"}


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_writes_json(restore_root_logger: None) -> None:
    stream = io.StringIO()
    configure_logging("debug", stream=stream)

    logging.getLogger("hr_airdrop_orchestrator").debug("hello", extra={"batch": 1})

    line = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert line["message"] == "hello"
    assert line["extra"] == {"batch": 1}
    assert logging.getLogger("urllib3").level == logging.WARNING
