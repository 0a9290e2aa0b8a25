"""Pure helpers shared by the span consumer and the storage backends."""

from __future__ import annotations

from typing import Any

from tracestore.core.errors import MalformedSpanError
from tracestore.model.span import Annotation, AnnotationType, BinaryAnnotation, Endpoint, Span

DEFAULT_DURATION_BUCKET_WINDOW_SECONDS = 24 * 60 * 60


def extract_trace_id(span: Span) -> int:
    """128-bit trace id; zero high bits collapse to the 64-bit value."""
    if span.trace_id_high != 0:
        return (span.trace_id_high << 64) | span.trace_id
    return span.trace_id


def annotation_keys(span: Span) -> list[str]:
    """Annotation values then binary-annotation keys, first occurrence wins.

    The read path filters on these, so order only needs to be deterministic.
    """
    keys: dict[str, None] = {}
    for annotation in span.annotations:
        keys.setdefault(annotation.value, None)
    for binary in span.binary_annotations:
        keys.setdefault(binary.key, None)
    return list(keys)


def duration_index_bucket(
    timestamp_micros: int,
    window_seconds: int = DEFAULT_DURATION_BUCKET_WINDOW_SECONDS,
) -> int:
    """Duration-index bucket of ``timestamp_micros``.

    Depends only on its arguments, so buckets written today are found by
    scans issued after a restart.
    """
    # dividing by the window first keeps the intermediate value small
    return (timestamp_micros // window_seconds) // 1_000_000


def endpoint_record(endpoint: Endpoint | None) -> dict[str, Any] | None:
    if endpoint is None:
        return None
    return {
        "service_name": endpoint.service_name,
        "ipv4": endpoint.ipv4,
        "port": endpoint.port,
        "ipv6": endpoint.ipv6,
    }


def annotation_record(annotation: Annotation) -> dict[str, Any]:
    """Encode an annotation for storage.

    Raises:
        MalformedSpanError: If the timestamp or value is missing.
    """
    if not isinstance(annotation.timestamp, int):
        raise MalformedSpanError(f"annotation timestamp is not an integer: {annotation.timestamp!r}")
    if not isinstance(annotation.value, str):
        raise MalformedSpanError(f"annotation value is not a string: {annotation.value!r}")
    return {
        "ts": annotation.timestamp,
        "v": annotation.value,
        "ep": endpoint_record(annotation.endpoint),
    }


def binary_annotation_record(annotation: BinaryAnnotation) -> dict[str, Any]:
    """Encode a binary annotation for storage.

    Raises:
        MalformedSpanError: If the key, value or type is invalid.
    """
    if not isinstance(annotation.key, str) or not annotation.key:
        raise MalformedSpanError(f"binary annotation key is invalid: {annotation.key!r}")
    if not isinstance(annotation.value, (bytes, bytearray)):
        raise MalformedSpanError(f"binary annotation {annotation.key!r} value is not bytes")
    if not isinstance(annotation.type, AnnotationType):
        raise MalformedSpanError(f"binary annotation {annotation.key!r} has unknown type")
    return {
        "k": annotation.key,
        "v": bytes(annotation.value),
        "t": annotation.type.value,
        "ep": endpoint_record(annotation.endpoint),
    }


__all__ = [
    "DEFAULT_DURATION_BUCKET_WINDOW_SECONDS",
    "annotation_keys",
    "annotation_record",
    "binary_annotation_record",
    "duration_index_bucket",
    "endpoint_record",
    "extract_trace_id",
]
