"""Tests for logging setup and trace binding."""

import json
import logging

import pytest
import structlog

from ruleinsight.core.logging import get_logger, setup_logging
from ruleinsight.observability.tracing import TraceContext, current_trace_id


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_worker_and_library_lines_share_one_json_stream(settings, capsys, restore_logging) -> None:
    setup_logging(settings)

    with TraceContext("suite_run", suite_id="test_suite_1") as trace_id:
        get_logger("ruleinsight.testing").info("Test suite execution started", run_id="run_1")
    logging.getLogger("aio_pika").info("Channel opened")
    logging.getLogger("aio_pika").warning("Connection lost")

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]

    assert [line["event"] for line in lines] == ["Test suite execution started", "Connection lost"]
    started, lost = lines
    assert started["trace_id"] == trace_id
    assert started["operation"] == "suite_run"
    assert started["suite_id"] == "test_suite_1"
    assert started["logger"] == "ruleinsight.testing"
    assert started["level"] == "info"
    assert started["service"] == settings.app_name
    assert lost["logger"] == "aio_pika"
    assert lost["version"] == settings.app_version


def test_nested_trace_keeps_outer_id(restore_logging) -> None:
    with TraceContext("suite_run", suite_id="test_suite_1") as outer:
        with TraceContext("impact_analysis", rule_id="rule_1") as inner:
            assert inner == outer
            assert structlog.contextvars.get_contextvars()["operation"] == "impact_analysis"
        assert structlog.contextvars.get_contextvars()["operation"] == "suite_run"
        assert "rule_id" not in structlog.contextvars.get_contextvars()

    assert current_trace_id() is None
    assert TraceContext("suite_run", trace_id="abc").trace_id == "abc"
