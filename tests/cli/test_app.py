"""Tests for tracestore.cli — command smoke tests via CliRunner.

Tests cover ``ingest`` against a temporary SQLite file, ``bucket`` and
``--version``. Logging is silenced so ``--json`` output stays parseable.
"""

from __future__ import annotations

import json
import logging
import sys

import pytest
import structlog
from typer.testing import CliRunner

from tracestore.cli.app import app, load_span_dicts

runner = CliRunner()


SPAN = {
    "trace_id": "0000000000000001",
    "id": "0000000000000002",
    "name": "get",
    "timestamp": 1_000_000,
    "duration": 500,
    "annotations": [
        {"timestamp": 1_000_000, "value": "sr", "endpoint": {"service_name": "frontend"}},
        {"timestamp": 1_000_500, "value": "ss", "endpoint": {"service_name": "frontend"}},
    ],
}


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(
        sys.modules["tracestore.cli.app"], "configure_logging", lambda **kwargs: None
    )
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        cache_logger_on_first_use=False,
    )


# ─── ingest ──────────────────────────────────────────────────────────────


class TestIngest:
    def test_json_array(self, tmp_path):
        spans = tmp_path / "spans.json"
        spans.write_text(json.dumps([SPAN]))
        db = tmp_path / "spans.db"

        result = runner.invoke(app, ["ingest", str(spans), "--database", str(db), "--json"])

        assert result.exit_code == 0, result.output
        summary = json.loads(result.output)
        assert summary["spans"] == 1
        assert summary["ok"] is True
        assert summary["tables"] == {
            "traces": 1,
            "trace_by_service_span": 2,
            "span_name_by_service": 1,
        }
        assert summary["dedup"]["issued"] == 3

    def test_ndjson_with_repeat(self, tmp_path):
        second = dict(SPAN, id="0000000000000003")
        spans = tmp_path / "spans.ndjson"
        spans.write_text(json.dumps(SPAN) + "\n" + json.dumps(second) + "\n")

        result = runner.invoke(
            app, ["ingest", str(spans), "-d", str(tmp_path / "spans.db"), "--json"]
        )

        assert result.exit_code == 0, result.output
        summary = json.loads(result.output)
        assert summary["tables"]["traces"] == 2
        assert summary["tables"]["span_name_by_service"] == 1
        assert summary["dedup"]["suppressed"] == 3

    def test_table_output(self, tmp_path):
        spans = tmp_path / "spans.json"
        spans.write_text(json.dumps([SPAN]))

        result = runner.invoke(app, ["ingest", str(spans), "-d", str(tmp_path / "spans.db")])

        assert result.exit_code == 0, result.output
        assert "traces" in result.output
        assert "1 spans ingested" in result.output

    def test_invalid_file_exits_2(self, tmp_path):
        spans = tmp_path / "spans.json"
        spans.write_text('[{"name": "no ids"}]')

        result = runner.invoke(app, ["ingest", str(spans), "-d", str(tmp_path / "spans.db")])
        assert result.exit_code == 2

    def test_null_annotation_timestamp_exits_2(self, tmp_path):
        bad = dict(SPAN, annotations=[{"timestamp": None, "value": "sr"}])
        spans = tmp_path / "spans.json"
        spans.write_text(json.dumps([bad]))

        result = runner.invoke(app, ["ingest", str(spans), "-d", str(tmp_path / "spans.db")])
        assert result.exit_code == 2

    def test_failed_write_exits_1(self, tmp_path):
        bad = dict(SPAN, annotations=[{"timestamp": 1, "value": None}])
        spans = tmp_path / "spans.json"
        spans.write_text(json.dumps([bad]))

        result = runner.invoke(
            app, ["ingest", str(spans), "-d", str(tmp_path / "spans.db"), "--json"]
        )

        assert result.exit_code == 1
        summary = json.loads(result.output)
        assert summary["ok"] is False
        assert summary["tables"]["traces"] == 0
        assert summary["error"]["failed"] == 1


class TestLoadSpanDicts:
    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("  \n")
        assert load_span_dicts(path) == []

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "spans.ndjson"
        path.write_text('{"a": 1}\n\n{"a": 2}\n')
        assert load_span_dicts(path) == [{"a": 1}, {"a": 2}]


# ─── bucket / version ────────────────────────────────────────────────────


class TestBucket:
    def test_default_window(self):
        result = runner.invoke(app, ["bucket", "1700000000123456"])
        assert result.exit_code == 0
        assert result.output.strip() == "19675"

    def test_custom_window(self):
        result = runner.invoke(app, ["bucket", "3600000000", "--window", "3600"])
        assert result.output.strip() == "1"

    def test_non_positive_window(self):
        result = runner.invoke(app, ["bucket", "1", "-w", "0"])
        assert result.exit_code == 2


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("tracestore ")
