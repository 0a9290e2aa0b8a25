"""In-memory session (Tier 1).

Keeps one dict per table keyed by primary key and applies every write as an
upsert of the bound columns only, the way a wide-column store does. Every
executed write is also appended to ``executed`` so tests can count them.

Failures can be injected with :meth:`InMemorySession.fail_when`.

Example::

    session = InMemorySession(compaction_class="TimeWindowCompactionStrategy")
    session.fail_when(lambda w: w.table == "traces", WriteError("rejected"))
    consumer = SpanConsumer(session)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from tracestore.core.errors import WriteError
from tracestore.core.protocols import BoundWrite, PreparedWrite
from tracestore.core.settings import SIZE_TIERED_COMPACTION
from tracestore.storage.schema import PRIMARY_KEYS, StoreMetadata


class InMemorySession:
    """Session backed by plain dictionaries. Single event loop only."""

    def __init__(
        self,
        *,
        keyspace: str = "tracestore",
        compaction_class: str = SIZE_TIERED_COMPACTION,
        latency_seconds: float = 0.0,
    ) -> None:
        self._keyspace = keyspace
        self._compaction_class = compaction_class
        self._latency = latency_seconds
        self._failures: list[tuple[Callable[[BoundWrite], bool], BaseException]] = []
        self.tables: dict[str, dict[tuple[Any, ...], dict[str, Any]]] = {
            table: {} for table in PRIMARY_KEYS
        }
        self.executed: list[BoundWrite] = []

    @property
    def keyspace(self) -> str:
        return self._keyspace

    def prepare(self, table: str, columns: tuple[str, ...], *, name: str) -> PreparedWrite:
        if table not in self.tables:
            raise WriteError(f"unknown table {table!r}").with_context(statement=name, table=table)
        return PreparedWrite(name=name, table=table, columns=tuple(columns))

    async def execute(self, bound: BoundWrite) -> None:
        self.executed.append(bound)
        # yield so concurrently dispatched writes interleave
        await asyncio.sleep(self._latency)
        for predicate, error in self._failures:
            if predicate(bound):
                raise error
        key = tuple(bound.values.get(column) for column in PRIMARY_KEYS[bound.table])
        if any(part is None for part in key):
            raise WriteError(f"{bound.name}: primary key column missing").with_context(
                statement=bound.name, table=bound.table
            )
        row = self.tables[bound.table].setdefault(key, {})
        row.update(bound.values)

    def read_metadata(self) -> StoreMetadata:
        return StoreMetadata(keyspace=self._keyspace, compaction_class=self._compaction_class)

    # -- test helpers --------------------------------------------------------

    def fail_when(self, predicate: Callable[[BoundWrite], bool], error: BaseException) -> None:
        """Make writes matching ``predicate`` raise ``error``."""
        self._failures.append((predicate, error))

    def clear_failures(self) -> None:
        self._failures.clear()

    def writes_to(self, table: str) -> list[BoundWrite]:
        """Executed writes against ``table``, in dispatch order."""
        return [w for w in self.executed if w.table == table]

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables[table].values())

    def __repr__(self) -> str:
        return f"InMemorySession(keyspace={self._keyspace!r}, executed={len(self.executed)})"


__all__ = ["InMemorySession"]
