"""
tracestore.storage - span consumer, dedup executor and session backends.

Modules:
    consumer  - SpanConsumer, the batch ingest orchestrator
    dedup     - DeduplicatingExecutor and its key types
    schema    - table names, column sets, StoreMetadata
    util      - trace id, annotation keys, duration buckets, record encoding
    memory    - InMemorySession
    sqlite    - SqliteSession
"""

from tracestore.storage.consumer import SpanConsumer
from tracestore.storage.dedup import (
    DeduplicatingExecutor,
    ServiceSpanNameKey,
    TraceServiceSpanNameKey,
)
from tracestore.storage.memory import InMemorySession
from tracestore.storage.schema import StoreMetadata
from tracestore.storage.sqlite import SqliteSession
from tracestore.storage.util import (
    annotation_keys,
    duration_index_bucket,
    extract_trace_id,
)

__all__ = [
    "DeduplicatingExecutor",
    "InMemorySession",
    "ServiceSpanNameKey",
    "SpanConsumer",
    "SqliteSession",
    "StoreMetadata",
    "TraceServiceSpanNameKey",
    "annotation_keys",
    "duration_index_bucket",
    "extract_trace_id",
]
