"""SQLite session adapter.

Persists the three write-path tables in a single SQLite file using the
stdlib :mod:`sqlite3` driver. Blocking calls run in a worker thread via
:func:`asyncio.to_thread`, so the event loop only suspends while waiting for
the acknowledgement, as with any network store.

Writes are upserts that touch only the bound columns (``INSERT … ON CONFLICT
DO UPDATE``), so an absent optional field never overwrites a stored value
and never becomes 0.

Identifiers (trace ids can be 128-bit) are stored as lower-hex text, UUIDs
as their canonical string, nested annotation records as JSON.

Usage::

    session = SqliteSession("spans.db")
    consumer = SpanConsumer(session)
    await consumer.accept(spans)
    session.close()
"""

from __future__ import annotations

import asyncio
import base64
import json
import sqlite3
import threading
import uuid
from typing import Any

from tracestore.core.errors import WriteError
from tracestore.core.logging import get_logger
from tracestore.core.protocols import BoundWrite, PreparedWrite
from tracestore.core.settings import SIZE_TIERED_COMPACTION
from tracestore.storage import schema
from tracestore.storage.schema import PRIMARY_KEYS, StoreMetadata

logger = get_logger(__name__)

_DDL = (
    f"""
    CREATE TABLE IF NOT EXISTS {schema.TABLE_TRACES} (
        trace_id           TEXT NOT NULL,
        ts_uuid            TEXT NOT NULL,
        id                 TEXT NOT NULL,
        ts                 INTEGER,
        span_name          TEXT,
        parent_id          TEXT,
        duration           INTEGER,
        annotations        TEXT,
        binary_annotations TEXT,
        all_annotations    TEXT,
        PRIMARY KEY (trace_id, ts_uuid, id)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {schema.TABLE_TRACE_BY_SERVICE_SPAN} (
        service_name TEXT NOT NULL,
        span_name    TEXT NOT NULL,
        bucket       INTEGER NOT NULL,
        ts           TEXT NOT NULL,
        trace_id     TEXT,
        duration     INTEGER,
        PRIMARY KEY (service_name, span_name, bucket, ts)
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS {schema.TABLE_SERVICE_SPANS} (
        service_name TEXT NOT NULL,
        span_name    TEXT NOT NULL,
        PRIMARY KEY (service_name, span_name)
    )
    """,
)

_HEX_ID_COLUMNS = {"trace_id", "id", "parent_id"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, uuid.UUID):
        return str(value)
    raise TypeError(f"cannot encode {type(value).__name__}")


def to_sql_value(column: str, value: Any) -> Any:
    """Convert a bound value into something sqlite3 accepts."""
    if column in _HEX_ID_COLUMNS and isinstance(value, int):
        return f"{value:x}"
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=_json_default, separators=(",", ":"))
    return value


class SqliteSession:
    """Session persisting to SQLite.

    Args:
        path: Database file, ``":memory:"`` for a throwaway store.
        keyspace: Reported in diagnostics.
        compaction_class: Reported by :meth:`read_metadata`; SQLite has no
            compaction strategy of its own.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        keyspace: str = "tracestore",
        compaction_class: str = SIZE_TIERED_COMPACTION,
    ) -> None:
        self._path = path
        self._keyspace = keyspace
        self._compaction_class = compaction_class
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._lock:
            for ddl in _DDL:
                self._conn.execute(ddl)
            self._conn.commit()
        self._sql: dict[str, str] = {}

    @property
    def keyspace(self) -> str:
        return self._keyspace

    def prepare(self, table: str, columns: tuple[str, ...], *, name: str) -> PreparedWrite:
        if table not in PRIMARY_KEYS:
            raise WriteError(f"unknown table {table!r}").with_context(statement=name, table=table)
        return PreparedWrite(name=name, table=table, columns=tuple(columns))

    async def execute(self, bound: BoundWrite) -> None:
        await asyncio.to_thread(self._execute_sync, bound)

    def _execute_sync(self, bound: BoundWrite) -> None:
        columns = list(bound.values)
        keys = PRIMARY_KEYS[bound.table]
        if not set(keys) <= set(columns):
            raise WriteError(f"{bound.name}: primary key column missing").with_context(
                statement=bound.name, table=bound.table
            )
        sql = self._upsert_sql(bound.table, columns, keys)
        params = tuple(to_sql_value(c, bound.values[c]) for c in columns)
        try:
            with self._lock:
                self._conn.execute(sql, params)
                self._conn.commit()
        except sqlite3.Error as exc:
            raise WriteError(f"{bound.name}: {exc}", cause=exc).with_context(
                statement=bound.name, table=bound.table
            ) from exc

    def _upsert_sql(self, table: str, columns: list[str], keys: tuple[str, ...]) -> str:
        cache_key = f"{table}:{','.join(columns)}"
        sql = self._sql.get(cache_key)
        if sql is not None:
            return sql
        placeholders = ", ".join("?" for _ in columns)
        updates = [c for c in columns if c not in keys]
        conflict = f"ON CONFLICT ({', '.join(keys)}) DO "
        if updates:
            conflict += "UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in updates)
        else:
            conflict += "NOTHING"
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) {conflict}"
        self._sql[cache_key] = sql
        return sql

    def read_metadata(self) -> StoreMetadata:
        return StoreMetadata(keyspace=self._keyspace, compaction_class=self._compaction_class)

    # -- convenience -------------------------------------------------------

    def count(self, table: str) -> int:
        """Row count of ``table``."""
        if table not in PRIMARY_KEYS:
            raise ValueError(f"unknown table {table!r}")
        with self._lock:
            return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.debug("sqlite_session.closed", path=self._path)

    def __repr__(self) -> str:
        return f"SqliteSession({self._path!r})"


__all__ = ["SqliteSession", "to_sql_value"]
