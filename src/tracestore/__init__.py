"""
tracestore - write path of a distributed-tracing span store.

Ingests batches of spans as primary span records plus the secondary-index
rows that serve lookups by service name, span name, time range and duration.

    from tracestore import InMemorySession, Span, SpanConsumer

    consumer = SpanConsumer(InMemorySession())
    await consumer.accept([span])
"""

__version__ = "0.1.0"

from tracestore.core.errors import BatchWriteError, TraceStoreError  # noqa: E402
from tracestore.model.span import (  # noqa: E402
    Annotation,
    AnnotationType,
    BinaryAnnotation,
    Endpoint,
    Span,
    guess_timestamp,
)
from tracestore.storage import (  # noqa: E402
    DeduplicatingExecutor,
    InMemorySession,
    SpanConsumer,
    SqliteSession,
)

__all__ = [
    "__version__",
    "Annotation",
    "AnnotationType",
    "BatchWriteError",
    "BinaryAnnotation",
    "DeduplicatingExecutor",
    "Endpoint",
    "InMemorySession",
    "Span",
    "SpanConsumer",
    "SqliteSession",
    "TraceStoreError",
    "guess_timestamp",
]
