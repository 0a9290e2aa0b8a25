"""Tests for the SQLite session adapter."""

from __future__ import annotations

import uuid

import pytest

from tracestore.core.errors import BatchWriteError, WriteError
from tracestore.storage.consumer import SpanConsumer
from tracestore.storage.schema import (
    TABLE_SERVICE_SPANS,
    TABLE_TRACE_BY_SERVICE_SPAN,
    TABLE_TRACES,
)
from tracestore.storage.sqlite import SqliteSession, to_sql_value

pytestmark = pytest.mark.integration


@pytest.fixture
def sqlite_session():
    session = SqliteSession()
    yield session
    session.close()


class TestToSqlValue:
    def test_ids_as_hex(self):
        assert to_sql_value("trace_id", (1 << 64) | 255) == "100000000000000ff"
        assert to_sql_value("parent_id", 10) == "a"

    def test_non_id_ints_unchanged(self):
        assert to_sql_value("duration", 500) == 500

    def test_uuid(self):
        value = uuid.UUID(int=1)
        assert to_sql_value("ts", value) == str(value)

    def test_nested_records_as_json(self):
        assert to_sql_value("binary_annotations", [{"k": "a", "v": b"\x00"}]) == (
            '[{"k":"a","v":"AA=="}]'
        )


class TestSqliteSession:
    @pytest.mark.asyncio
    async def test_ingest_populates_tables(self, sqlite_session, settings, make_span):
        consumer = SpanConsumer(sqlite_session, settings=settings)
        await consumer.accept([make_span()])

        assert sqlite_session.count(TABLE_TRACES) == 1
        assert sqlite_session.count(TABLE_TRACE_BY_SERVICE_SPAN) == 2
        assert sqlite_session.count(TABLE_SERVICE_SPANS) == 1

        (row,) = sqlite_session.fetchall(
            f"SELECT trace_id, id, ts, all_annotations FROM {TABLE_TRACES}"
        )
        assert row == ("1", "2", 1_000_000, "sr,ss")

    @pytest.mark.asyncio
    async def test_upsert_keeps_columns_not_bound(self, sqlite_session):
        insert = sqlite_session.prepare(
            TABLE_TRACE_BY_SERVICE_SPAN,
            ("service_name", "span_name", "bucket", "ts", "trace_id", "duration"),
            name="insert-trace-service-span-name",
        )
        ts = uuid.UUID(int=42)
        key = {"service_name": "web", "span_name": "get", "bucket": 0, "ts": ts}
        await sqlite_session.execute(insert.bind(**key, trace_id=1, duration=500))
        await sqlite_session.execute(insert.bind(**key, trace_id=2))

        rows = sqlite_session.fetchall(
            f"SELECT trace_id, duration FROM {TABLE_TRACE_BY_SERVICE_SPAN}"
        )
        assert rows == [("2", 500)]

    @pytest.mark.asyncio
    async def test_catalogue_insert_is_idempotent(self, sqlite_session):
        insert = sqlite_session.prepare(
            TABLE_SERVICE_SPANS, ("service_name", "span_name"), name="insert-service-span-name"
        )
        for _ in range(3):
            await sqlite_session.execute(insert.bind(service_name="web", span_name="get"))
        assert sqlite_session.count(TABLE_SERVICE_SPANS) == 1

    @pytest.mark.asyncio
    async def test_missing_primary_key_column(self, sqlite_session):
        insert = sqlite_session.prepare(
            TABLE_SERVICE_SPANS, ("service_name", "span_name"), name="insert-service-span-name"
        )
        with pytest.raises(WriteError):
            await sqlite_session.execute(insert.bind(service_name="web"))

    @pytest.mark.asyncio
    async def test_write_error_surfaces_through_consumer(self, sqlite_session, settings, make_span):
        consumer = SpanConsumer(sqlite_session, settings=settings)
        sqlite_session.fetchall(f"DROP TABLE {TABLE_SERVICE_SPANS}")

        with pytest.raises(BatchWriteError) as exc_info:
            await consumer.accept([make_span()])
        assert isinstance(exc_info.value.cause, WriteError)
        assert sqlite_session.count(TABLE_TRACES) == 1

    def test_unknown_table(self, sqlite_session):
        with pytest.raises(WriteError):
            sqlite_session.prepare("nope", ("a",), name="x")

    def test_file_backed(self, tmp_path):
        path = str(tmp_path / "spans.db")
        SqliteSession(path).close()
        session = SqliteSession(path)
        try:
            assert session.count(TABLE_TRACES) == 0
        finally:
            session.close()
