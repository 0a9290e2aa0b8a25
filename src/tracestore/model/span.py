"""
Span domain model.

A span is one timed unit of work in a distributed trace, identified by
``(trace_id, id)``. Spans carry timestamped annotations (event markers such
as client-send / server-receive) and binary annotations (key/typed-value
tags). Both may name the endpoint (service) that recorded them, which is
how a span is attributed to one or more services.

All types are frozen: a span is created per ingest call and never mutated.

Examples:
    >>> web = Endpoint("Frontend", ipv4="127.0.0.1", port=8080)
    >>> span = Span(
    ...     trace_id=1, id=2, name="get", timestamp=1_000_000, duration=500,
    ...     annotations=(Annotation(1_000_000, SERVER_RECV, web),),
    ... )
    >>> span.service_names
    ('frontend',)

Tags:
    span, annotation, endpoint, domain-model, tracestore
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Core annotation values
CLIENT_SEND = "cs"
CLIENT_RECV = "cr"
SERVER_SEND = "ss"
SERVER_RECV = "sr"

_MAX_ID = (1 << 64) - 1


class AnnotationType(str, Enum):
    """Type of a binary annotation's value."""

    BOOL = "BOOL"
    BYTES = "BYTES"
    I16 = "I16"
    I32 = "I32"
    I64 = "I64"
    DOUBLE = "DOUBLE"
    STRING = "STRING"


@dataclass(frozen=True)
class Endpoint:
    """Network location and service name of the recorder."""

    service_name: str
    ipv4: str | None = None
    port: int | None = None
    ipv6: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "service_name", (self.service_name or "").lower())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Endpoint:
        return cls(
            service_name=data.get("service_name", ""),
            ipv4=data.get("ipv4"),
            port=data.get("port"),
            ipv6=data.get("ipv6"),
        )


@dataclass(frozen=True)
class Annotation:
    """A timestamped event; ``timestamp`` is epoch microseconds."""

    timestamp: int
    value: str
    endpoint: Endpoint | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Annotation:
        endpoint = data.get("endpoint")
        return cls(
            timestamp=_check_micros("annotation timestamp", data["timestamp"]),
            value=data["value"],
            endpoint=Endpoint.from_dict(endpoint) if endpoint else None,
        )


@dataclass(frozen=True)
class BinaryAnnotation:
    """A key/typed-value tag. ``value`` holds the encoded bytes."""

    key: str
    value: bytes
    type: AnnotationType = AnnotationType.STRING
    endpoint: Endpoint | None = None

    @classmethod
    def string(cls, key: str, text: str, endpoint: Endpoint | None = None) -> BinaryAnnotation:
        """Build a STRING binary annotation from text."""
        return cls(key=key, value=text.encode("utf-8"), endpoint=endpoint)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BinaryAnnotation:
        endpoint = data.get("endpoint")
        type_ = AnnotationType(data.get("type", AnnotationType.STRING.value))
        value = data["value"]
        if isinstance(value, str):
            value = value.encode("utf-8") if type_ is AnnotationType.STRING else bytes.fromhex(value)
        return cls(
            key=data["key"],
            value=value,
            type=type_,
            endpoint=Endpoint.from_dict(endpoint) if endpoint else None,
        )


@dataclass(frozen=True)
class Span:
    """
    One timed unit of work.

    Identifiers are unsigned 64-bit integers. ``trace_id_high`` carries the
    upper half of a 128-bit trace id and is zero for 64-bit-only systems.
    ``timestamp`` and ``duration`` are microseconds and may be unknown.
    """

    trace_id: int
    id: int
    name: str
    parent_id: int | None = None
    timestamp: int | None = None
    duration: int | None = None
    annotations: tuple[Annotation, ...] = field(default_factory=tuple)
    binary_annotations: tuple[BinaryAnnotation, ...] = field(default_factory=tuple)
    trace_id_high: int = 0

    def __post_init__(self) -> None:
        for label in ("trace_id", "id", "trace_id_high"):
            _check_id(label, getattr(self, label))
        if self.parent_id is not None:
            _check_id("parent_id", self.parent_id)
        # Accept any sequence, store tuples so the span stays hashable.
        object.__setattr__(self, "annotations", tuple(self.annotations))
        object.__setattr__(self, "binary_annotations", tuple(self.binary_annotations))
        object.__setattr__(self, "name", (self.name or "").lower())

    @property
    def service_names(self) -> tuple[str, ...]:
        """Distinct, non-empty service names of every recorded endpoint."""
        names: dict[str, None] = {}
        endpoints = [a.endpoint for a in self.annotations]
        endpoints += [b.endpoint for b in self.binary_annotations]
        for endpoint in endpoints:
            if endpoint is not None and endpoint.service_name:
                names.setdefault(endpoint.service_name, None)
        return tuple(names)

    @property
    def id_hex(self) -> str:
        return f"{self.id:016x}"

    @property
    def trace_id_hex(self) -> str:
        if self.trace_id_high:
            return f"{self.trace_id_high:016x}{self.trace_id:016x}"
        return f"{self.trace_id:016x}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Span:
        """Build a span from a mapping keyed by this model's field names.

        Identifiers may be given as integers or hex strings. Timestamps and
        durations must be non-negative integers of microseconds.
        """
        return cls(
            trace_id=_parse_id(data["trace_id"]),
            trace_id_high=_parse_id(data.get("trace_id_high", 0)),
            id=_parse_id(data["id"]),
            name=data.get("name", ""),
            parent_id=_parse_id(data["parent_id"]) if data.get("parent_id") is not None else None,
            timestamp=_optional_micros("timestamp", data.get("timestamp")),
            duration=_optional_micros("duration", data.get("duration")),
            annotations=tuple(Annotation.from_dict(a) for a in data.get("annotations", ())),
            binary_annotations=tuple(
                BinaryAnnotation.from_dict(b) for b in data.get("binary_annotations", ())
            ),
        )


def guess_timestamp(span: Span) -> int | None:
    """Best-known start of ``span`` in epoch microseconds.

    The span's own timestamp when set; otherwise the earliest annotation
    timestamp; otherwise ``None`` (unresolved).
    """
    if span.timestamp is not None:
        return span.timestamp
    if not span.annotations:
        return None
    return min(a.timestamp for a in span.annotations)


def _check_id(label: str, value: int) -> None:
    if not isinstance(value, int) or not 0 <= value <= _MAX_ID:
        raise ValueError(f"{label} must be an unsigned 64-bit integer, got {value!r}")


def _parse_id(value: int | str) -> int:
    if isinstance(value, str):
        return int(value, 16)
    return value


def _check_micros(label: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{label} must be a non-negative integer of microseconds, got {value!r}")
    return value


def _optional_micros(label: str, value: Any) -> int | None:
    return None if value is None else _check_micros(label, value)


def spans_from_dicts(items: Sequence[Mapping[str, Any]]) -> list[Span]:
    """Convenience: build many spans from mappings."""
    return [Span.from_dict(item) for item in items]


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
