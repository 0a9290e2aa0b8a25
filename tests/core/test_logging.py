"""Tests for tracestore.core.logging."""

import json

import pytest
import structlog

from tracestore.core.logging import LogContext, configure_logging, get_logger


class TestConfigureLogging:
    def test_json_output_is_ecs_compatible(self, capsys):
        configure_logging(level="INFO", json_format=True, service="tracestore-test")
        structlog.get_logger("test.json").info("span_consumer.accept", spans=3)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "span_consumer.accept"
        assert record["spans"] == 3
        assert record["service.name"] == "tracestore-test"
        assert record["log.level"] == "info"
        assert "@timestamp" in record

    def test_level_filters(self, capsys):
        configure_logging(level="WARNING", json_format=True)
        structlog.get_logger("test.level").info("hidden")
        assert "hidden" not in capsys.readouterr().out

    def test_get_logger_returns_bound_logger(self):
        log = get_logger("test.module")
        assert hasattr(log, "info")
        assert hasattr(log, "warning")


class TestLogContext:
    def test_scoped(self):
        with LogContext(batch_id="b2"):
            assert structlog.contextvars.get_contextvars()["batch_id"] == "b2"
        assert "batch_id" not in structlog.contextvars.get_contextvars()

    def test_restores_outer_value(self):
        structlog.contextvars.bind_contextvars(batch_id="outer", run="r1")
        with LogContext(batch_id="inner"):
            assert structlog.contextvars.get_contextvars() == {"batch_id": "inner", "run": "r1"}
        assert structlog.contextvars.get_contextvars() == {"batch_id": "outer", "run": "r1"}

    def test_unbound_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext(batch_id="b3"):
                raise RuntimeError("boom")
        assert structlog.contextvars.get_contextvars() == {}

    def test_merged_into_json_output(self, capsys):
        configure_logging(level="INFO", json_format=True)
        with LogContext(batch_id="b4"):
            structlog.get_logger("test.ctx").info("write_batch.complete")

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["batch_id"] == "b4"
