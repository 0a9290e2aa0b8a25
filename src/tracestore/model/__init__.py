"""Span domain model."""

from tracestore.model.span import (
    CLIENT_RECV,
    CLIENT_SEND,
    SERVER_RECV,
    SERVER_SEND,
    Annotation,
    AnnotationType,
    BinaryAnnotation,
    Endpoint,
    Span,
    guess_timestamp,
    spans_from_dicts,
)

__all__ = [
    "CLIENT_RECV",
    "CLIENT_SEND",
    "SERVER_RECV",
    "SERVER_SEND",
    "Annotation",
    "AnnotationType",
    "BinaryAnnotation",
    "Endpoint",
    "Span",
    "guess_timestamp",
    "spans_from_dicts",
]
