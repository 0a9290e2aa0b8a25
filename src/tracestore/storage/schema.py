"""Table names, column sets and storage metadata of the write path.

Only the logical record shape lives here; physical column types belong to
each backend.

    traces                  (trace_id, ts_uuid, id) → span record
    trace_by_service_span   (service_name, span_name, bucket, ts) → trace_id, duration
    span_name_by_service    (service_name, span_name)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tracestore.core.settings import TIME_WINDOW_COMPACTION

if TYPE_CHECKING:
    from tracestore.core.protocols import Session

TABLE_TRACES = "traces"
TABLE_TRACE_BY_SERVICE_SPAN = "trace_by_service_span"
TABLE_SERVICE_SPANS = "span_name_by_service"

TRACES_COLUMNS = (
    "trace_id",
    "ts_uuid",
    "id",
    "ts",
    "span_name",
    "parent_id",
    "duration",
    "annotations",
    "binary_annotations",
    "all_annotations",
)
TRACE_BY_SERVICE_SPAN_COLUMNS = (
    "service_name",
    "span_name",
    "bucket",
    "ts",
    "trace_id",
    "duration",
)
SERVICE_SPANS_COLUMNS = ("service_name", "span_name")

PRIMARY_KEYS: dict[str, tuple[str, ...]] = {
    TABLE_TRACES: ("trace_id", "ts_uuid", "id"),
    TABLE_TRACE_BY_SERVICE_SPAN: ("service_name", "span_name", "bucket", "ts"),
    TABLE_SERVICE_SPANS: ("service_name", "span_name"),
}


@dataclass(frozen=True)
class StoreMetadata:
    """What the write path needs to know about the store's configuration."""

    keyspace: str
    compaction_class: str

    @property
    def is_time_window_compaction(self) -> bool:
        return TIME_WINDOW_COMPACTION in self.compaction_class


def read_metadata(session: Session) -> StoreMetadata:
    return session.read_metadata()


__all__ = [
    "PRIMARY_KEYS",
    "SERVICE_SPANS_COLUMNS",
    "TABLE_SERVICE_SPANS",
    "TABLE_TRACES",
    "TABLE_TRACE_BY_SERVICE_SPAN",
    "TRACES_COLUMNS",
    "TRACE_BY_SERVICE_SPAN_COLUMNS",
    "StoreMetadata",
    "read_metadata",
]
