"""Tests for tracestore.storage.util."""

import pytest

from tracestore.core.errors import MalformedSpanError
from tracestore.model.span import (
    CLIENT_RECV,
    CLIENT_SEND,
    Annotation,
    AnnotationType,
    BinaryAnnotation,
    Endpoint,
    Span,
)
from tracestore.storage.util import (
    annotation_keys,
    annotation_record,
    binary_annotation_record,
    duration_index_bucket,
    extract_trace_id,
)

DAY_MICROS = 86_400 * 1_000_000


class TestExtractTraceId:
    def test_64_bit(self):
        assert extract_trace_id(Span(trace_id=7, id=1, name="x")) == 7

    def test_128_bit(self):
        span = Span(trace_id=7, id=1, name="x", trace_id_high=1)
        assert extract_trace_id(span) == (1 << 64) | 7

    def test_full_width_low_bits(self):
        span = Span(trace_id=(1 << 64) - 1, id=1, name="x", trace_id_high=2)
        assert extract_trace_id(span) == (2 << 64) + (1 << 64) - 1


class TestAnnotationKeys:
    def test_values_then_binary_keys_in_order(self):
        ep = Endpoint("web")
        span = Span(
            trace_id=1,
            id=1,
            name="x",
            annotations=(
                Annotation(1, CLIENT_SEND, ep),
                Annotation(2, "retry", ep),
                Annotation(3, CLIENT_RECV, ep),
                Annotation(4, "retry", ep),
            ),
            binary_annotations=(
                BinaryAnnotation.string("http.path", "/a", ep),
                BinaryAnnotation.string("retry", "1", ep),
            ),
        )
        assert annotation_keys(span) == ["cs", "retry", "cr", "http.path"]

    def test_empty(self):
        assert annotation_keys(Span(trace_id=1, id=1, name="x")) == []


class TestDurationIndexBucket:
    def test_first_day_is_bucket_zero(self):
        assert duration_index_bucket(1_000_000) == 0
        assert duration_index_bucket(DAY_MICROS - 1) == 0

    def test_day_boundary(self):
        assert duration_index_bucket(DAY_MICROS) == 1
        assert duration_index_bucket(3 * DAY_MICROS + 5) == 3

    def test_custom_window(self):
        assert duration_index_bucket(3_600_000_000, window_seconds=3600) == 1

    def test_pure(self):
        ts = 1_700_000_000_123_456
        assert {duration_index_bucket(ts) for _ in range(5)} == {19675}


class TestRecords:
    def test_annotation_record(self):
        record = annotation_record(Annotation(5, "sr", Endpoint("web", ipv4="1.2.3.4", port=80)))
        assert record == {
            "ts": 5,
            "v": "sr",
            "ep": {"service_name": "web", "ipv4": "1.2.3.4", "port": 80, "ipv6": None},
        }

    def test_annotation_without_endpoint(self):
        assert annotation_record(Annotation(5, "sr"))["ep"] is None

    def test_annotation_missing_value_is_malformed(self):
        with pytest.raises(MalformedSpanError):
            annotation_record(Annotation(5, None))  # type: ignore[arg-type]

    def test_binary_annotation_record(self):
        record = binary_annotation_record(
            BinaryAnnotation("error", b"\x01", AnnotationType.BOOL)
        )
        assert record == {"k": "error", "v": b"\x01", "t": "BOOL", "ep": None}

    def test_binary_annotation_text_value_is_malformed(self):
        with pytest.raises(MalformedSpanError):
            binary_annotation_record(BinaryAnnotation("k", "text"))  # type: ignore[arg-type]
