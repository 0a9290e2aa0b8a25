"""
Shared pytest fixtures for tracestore tests.

This module provides:
- Settings cache and structlog cleanup for test isolation
- A controllable clock for TTL tests
- An in-memory session and a span consumer wired to it
- A factory for the canonical example span
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest
import structlog

# Ensure tracestore package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tracestore.core.settings import TraceStoreSettings, clear_settings_cache
from tracestore.model.span import SERVER_RECV, SERVER_SEND, Annotation, Endpoint, Span
from tracestore.storage.memory import InMemorySession


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_global_state():
    """Reset cached settings and structlog configuration around each test."""
    clear_settings_cache()
    structlog.contextvars.clear_contextvars()
    yield
    clear_settings_cache()
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def settings() -> TraceStoreSettings:
    return TraceStoreSettings(
        written_names_ttl_seconds=3600,
        duration_bucket_window_seconds=24 * 60 * 60,
        _env_file=None,
    )


@pytest.fixture
def session() -> InMemorySession:
    return InMemorySession()


@pytest.fixture
def consumer(session: InMemorySession, settings: TraceStoreSettings, clock: FakeClock):
    from tracestore.storage.consumer import SpanConsumer
    from tracestore.storage.dedup import DeduplicatingExecutor

    executor = DeduplicatingExecutor(
        session, settings.written_names_ttl_seconds, clock=clock
    )
    return SpanConsumer(session, settings=settings, deduplicating_executor=executor)


# =============================================================================
# Spans
# =============================================================================


FRONTEND = Endpoint("frontend", ipv4="192.168.99.101", port=9000)
BACKEND = Endpoint("backend", ipv4="192.168.99.102", port=9000)


@pytest.fixture
def make_span() -> Callable[..., Span]:
    """Factory for ``{trace_id=1, id=2, name="get", timestamp=1000000,
    duration=500, service_names={"frontend"}}`` with overrides."""

    def _make(**overrides: Any) -> Span:
        fields: dict[str, Any] = {
            "trace_id": 1,
            "id": 2,
            "name": "get",
            "timestamp": 1_000_000,
            "duration": 500,
            "annotations": (
                Annotation(1_000_000, SERVER_RECV, FRONTEND),
                Annotation(1_000_500, SERVER_SEND, FRONTEND),
            ),
        }
        fields.update(overrides)
        return Span(**fields)

    return _make
