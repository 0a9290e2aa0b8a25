"""
Span consumer — the write path of the trace store.

Accepts a batch of spans and records each one as a primary span record plus
the secondary-index rows that make lookups by service name, span name,
time range and duration efficient.

Manifesto:
    One logical "ingest a batch" fans out into many physical writes. The
    consumer's job is orchestration, not storage:

    - **Maximum concurrency:** Every write is dispatched as soon as it is
      built; the batch is joined once at the end
    - **Scoped failure:** A span that cannot be encoded fails its own write
      only; siblings still go out
    - **Honest outcome:** The batch succeeds only if every write did;
      otherwise one BatchWriteError carries the first failure
    - **No redundant index writes:** Index rows go through the
      DeduplicatingExecutor
    - **Diagnostics never block:** A timestamp-less span against a
      time-window compacted store is logged, and written anyway

Architecture:
    ::

        accept(spans)
          for span:
            timestamp = guess_timestamp(span)
            trace_id  = extract_trace_id(span)
            store_span(span, trace_id, timestamp) ────────────► insert-span
            for service_name in span.service_names:
              if timestamp is resolved:
                store_trace_service_span_name(name)     ─┐
                if span.name:                            ├─► DeduplicatingExecutor
                  store_trace_service_span_name("")     ─┤
                  store_service_span_name(name)         ─┘
          AsyncWriteBatch.run_all() → raise_for_failures()

    Per span with a timestamp, a non-empty name and one service this is
    four writes; with an empty name it is two.

Examples:
    >>> consumer = SpanConsumer(InMemorySession())
    >>> await consumer.accept([span])        # raises BatchWriteError on failure

Guardrails:
    ❌ DON'T: Await a write before building the next one
    ✅ DO: Dispatch everything, then join

    ❌ DON'T: Write ``ts``/``duration``/``parent_id`` as 0 when absent
    ✅ DO: Leave absent fields unset (``PreparedWrite.bind`` drops None)

Tags:
    span-consumer, write-path, fan-out, asyncio, secondary-index, tracestore

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from tracestore.core.errors import MalformedSpanError, TraceStoreError
from tracestore.core.logging import LogContext, get_logger
from tracestore.core.protocols import Session
from tracestore.core.settings import TraceStoreSettings, get_settings
from tracestore.core.timeuuid import time_ordered_uuid
from tracestore.execution.async_batch import AsyncWriteBatch
from tracestore.model.span import Span, guess_timestamp
from tracestore.storage import schema
from tracestore.storage.dedup import (
    DeduplicatingExecutor,
    ServiceSpanNameKey,
    TraceServiceSpanNameKey,
)
from tracestore.storage.util import (
    annotation_keys,
    annotation_record,
    binary_annotation_record,
    duration_index_bucket,
    extract_trace_id,
)

logger = get_logger(__name__)

INSERT_SPAN = "insert-span"
INSERT_TRACE_SERVICE_SPAN_NAME = "insert-trace-service-span-name"
INSERT_SERVICE_SPAN_NAME = "insert-service-span-name"


class SpanConsumer:
    """Ingests span batches into a :class:`~tracestore.core.protocols.Session`.

    Args:
        session: Storage session receiving the writes.
        settings: Dedup TTL and bucket window; defaults to ``get_settings()``.
        deduplicating_executor: Override the executor (tests inject a clock).
    """

    def __init__(
        self,
        session: Session,
        *,
        settings: TraceStoreSettings | None = None,
        deduplicating_executor: DeduplicatingExecutor | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._session = session
        self._metadata = schema.read_metadata(session)
        self._bucket_window = settings.duration_bucket_window_seconds

        self._insert_span = session.prepare(
            schema.TABLE_TRACES, schema.TRACES_COLUMNS, name=INSERT_SPAN
        )
        self._insert_trace_service_span_name = session.prepare(
            schema.TABLE_TRACE_BY_SERVICE_SPAN,
            schema.TRACE_BY_SERVICE_SPAN_COLUMNS,
            name=INSERT_TRACE_SERVICE_SPAN_NAME,
        )
        self._insert_service_span_name = session.prepare(
            schema.TABLE_SERVICE_SPANS,
            schema.SERVICE_SPANS_COLUMNS,
            name=INSERT_SERVICE_SPAN_NAME,
        )

        self._dedup = deduplicating_executor or DeduplicatingExecutor(
            session, settings.written_names_ttl_seconds
        )

    async def accept(self, spans: Iterable[Span]) -> None:
        """Store ``spans`` and their index rows.

        Every write is dispatched before any is awaited. Callers that stop
        waiting do not retract writes already dispatched.

        Raises:
            BatchWriteError: If any write failed. Others may have succeeded.
        """
        batch = AsyncWriteBatch()
        span_count = 0

        # tasks copy the context when created, so every write logs the batch id
        with LogContext(batch_id=batch.batch_id):
            for span in spans:
                span_count += 1
                try:
                    # indexing is by timestamp, so derive one if not present
                    timestamp = guess_timestamp(span)
                    trace_id = extract_trace_id(span)
                    service_names = span.service_names
                except Exception as exc:
                    batch.add(INSERT_SPAN, _failed(_malformed(span, exc)))
                    continue
                batch.add(INSERT_SPAN, self.store_span(span, trace_id, timestamp))

                if timestamp is None:
                    continue
                for service_name in service_names:
                    # stored twice: once under the span name, once under "" (any name)
                    batch.add(
                        INSERT_TRACE_SERVICE_SPAN_NAME,
                        self.store_trace_service_span_name(
                            service_name, span.name, timestamp, span.duration, trace_id
                        ),
                    )
                    if span.name:  # otherwise the "" row above already covers it
                        batch.add(
                            INSERT_TRACE_SERVICE_SPAN_NAME,
                            self.store_trace_service_span_name(
                                service_name, "", timestamp, span.duration, trace_id
                            ),
                        )
                        batch.add(
                            INSERT_SERVICE_SPAN_NAME,
                            self.store_service_span_name(service_name, span.name),
                        )

            result = await batch.run_all()
            logger.debug(
                "span_consumer.accept",
                spans=span_count,
                writes=result.total,
                failed=result.failed,
            )
        result.raise_for_failures()

    ingest = accept

    def store_span(
        self, span: Span, trace_id: int, timestamp: int | None
    ) -> asyncio.Future[Any]:
        """Dispatch the primary record of ``span``."""
        try:
            if not timestamp and self._metadata.is_time_window_compaction:
                logger.warning(
                    "span.missing_timestamp",
                    span_id=span.id_hex,
                    trace_id=span.trace_id_hex,
                    keyspace=self._session.keyspace,
                    hint=(
                        "if this happens a lot consider switching back to "
                        f"SizeTieredCompactionStrategy for {self._session.keyspace}.traces"
                    ),
                )

            bound = self._insert_span.bind(
                trace_id=trace_id,
                ts_uuid=time_ordered_uuid(timestamp),
                id=span.id,
                span_name=span.name,
                annotations=[annotation_record(a) for a in span.annotations],
                binary_annotations=[binary_annotation_record(b) for b in span.binary_annotations],
                all_annotations=",".join(annotation_keys(span)),
                # optional fields: bind() drops None
                ts=span.timestamp,
                duration=span.duration,
                parent_id=span.parent_id,
            )
            return asyncio.ensure_future(self._session.execute(bound))
        except Exception as exc:
            if isinstance(exc, TraceStoreError):
                exc.with_context(
                    trace_id=span.trace_id_hex, span_id=span.id_hex, statement=INSERT_SPAN
                )
            return _failed(exc)

    def store_trace_service_span_name(
        self,
        service_name: str,
        span_name: str,
        timestamp_micros: int,
        duration: int | None,
        trace_id: int,
    ) -> asyncio.Future[Any]:
        """Dispatch (or suppress) a ``trace_by_service_span`` row."""
        try:
            bucket = duration_index_bucket(timestamp_micros, self._bucket_window)
            ts = time_ordered_uuid(timestamp_micros)
            bound = self._insert_trace_service_span_name.bind(
                service_name=service_name,
                span_name=span_name,
                bucket=bucket,
                ts=ts,
                trace_id=trace_id,
                duration=duration,
            )
            key = TraceServiceSpanNameKey(
                service_name, span_name, bucket, timestamp_micros // 1000
            )
            return self._dedup.maybe_execute(bound, key)
        except Exception as exc:
            return _failed(exc)

    def store_service_span_name(self, service_name: str, span_name: str) -> asyncio.Future[Any]:
        """Dispatch (or suppress) a ``span_name_by_service`` row."""
        try:
            bound = self._insert_service_span_name.bind(
                service_name=service_name, span_name=span_name
            )
            return self._dedup.maybe_execute(bound, ServiceSpanNameKey(service_name, span_name))
        except Exception as exc:
            return _failed(exc)

    @property
    def deduplicating_executor(self) -> DeduplicatingExecutor:
        return self._dedup


def _failed(exc: BaseException) -> asyncio.Future[Any]:
    future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
    future.set_exception(exc)
    return future


def _malformed(span: Span, exc: Exception) -> MalformedSpanError:
    return MalformedSpanError(
        f"cannot derive index fields: {exc}", cause=exc
    ).with_context(trace_id=span.trace_id_hex, span_id=span.id_hex, statement=INSERT_SPAN)


__all__ = [
    "INSERT_SERVICE_SPAN_NAME",
    "INSERT_SPAN",
    "INSERT_TRACE_SERVICE_SPAN_NAME",
    "SpanConsumer",
]
