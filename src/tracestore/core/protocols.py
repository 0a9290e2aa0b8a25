"""
Canonical write-path contracts for tracestore.

The span consumer never talks to a storage engine directly. It prepares one
named write per record type, binds named fields to it, and hands the bound
write to a :class:`Session` which acknowledges it asynchronously.

Architecture:
    ::

        protocols.py (YOU ARE HERE)
        ├── PreparedWrite  — named write against one table and column set
        ├── BoundWrite     — prepared write + field values, ready to execute
        └── Session        — async storage contract (prepare/execute/metadata)

    Implementations:
        storage/memory.py  — InMemorySession (tests, development)
        storage/sqlite.py  — SqliteSession (single-machine persistence)

Guardrails:
    ❌ DON'T: Bind ``None`` to mean "absent" and expect it to be stored
    ✅ DO: Let ``bind()`` drop ``None`` values; absent fields are never written

    ❌ DON'T: Put engine-specific logic in these classes
    ✅ DO: Keep engine details in the Session implementation

Tags:
    protocol, session, prepared-statement, async, tracestore, contracts
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tracestore.core.errors import MalformedSpanError

if TYPE_CHECKING:
    from tracestore.storage.schema import StoreMetadata


@dataclass(frozen=True)
class PreparedWrite:
    """A named write against ``table`` accepting ``columns``.

    Example:
        insert = PreparedWrite("insert-service-span-name", "span_name_by_service",
                               ("service_name", "span_name"))
        bound = insert.bind(service_name="frontend", span_name="get")
    """

    name: str
    table: str
    columns: tuple[str, ...]

    def bind(self, **fields: Any) -> BoundWrite:
        """Bind field values by column name.

        ``None`` values are dropped so that optional fields stay unset.

        Raises:
            MalformedSpanError: If a field does not name a column.
        """
        unknown = sorted(set(fields) - set(self.columns))
        if unknown:
            raise MalformedSpanError(
                f"{self.name}: unknown column(s) {', '.join(unknown)}"
            ).with_context(statement=self.name, table=self.table)
        values = {k: v for k, v in fields.items() if v is not None}
        return BoundWrite(prepared=self, values=MappingProxyType(values))


@dataclass(frozen=True)
class BoundWrite:
    """A prepared write with its field values."""

    prepared: PreparedWrite
    values: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def name(self) -> str:
        return self.prepared.name

    @property
    def table(self) -> str:
        return self.prepared.table

    def __repr__(self) -> str:
        return f"BoundWrite({self.name!r}, {dict(self.values)!r})"


@runtime_checkable
class Session(Protocol):
    """
    Async storage session consumed by the write path.

    ``execute`` returns once the backend acknowledged the write and raises
    on failure. Writes must be idempotent on their primary key: executing
    the same bound write twice leaves the same stored state.
    """

    @property
    def keyspace(self) -> str:
        """Logical keyspace / database name (used in diagnostics)."""
        ...

    def prepare(self, table: str, columns: tuple[str, ...], *, name: str) -> PreparedWrite:
        """Prepare a named write for ``table``."""
        ...

    async def execute(self, bound: BoundWrite) -> None:
        """Execute a bound write. ASYNC."""
        ...

    def read_metadata(self) -> StoreMetadata:
        """Return storage metadata (compaction strategy, keyspace)."""
        ...


__all__ = ["BoundWrite", "PreparedWrite", "Session"]
