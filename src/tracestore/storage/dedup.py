"""
Deduplicating executor — issue an identical index write at most once per TTL.

Service/span-name index writes are low-cardinality and highly repetitive:
every span of a busy endpoint asks to record the same ``(service, name)``
pair. The executor remembers which logical writes it already issued and
short-circuits repeats until the TTL elapses.

Manifesto:
    - **Keys are logical:** A key names the row being written, never the
      random parts of it, so identical logical writes collapse
    - **Never lose a write:** The lookup and the insert happen without a
      suspension point in between; a new key always dispatches its write
    - **Never fake success:** A repeat of a write that is still in flight
      waits for it; a failed write forgets its key so the next request
      re-issues it
    - **Self-healing:** After the TTL every key is new again

Architecture:
    ::

        maybe_execute(bound, key)
            │
            ├─ key absent / expired / failed ──► session.execute(bound)
            │                                    entry = (now + ttl, task)
            │
            └─ key live
                 ├─ task done      ──► completed future (no write)
                 └─ task pending   ──► shield(task)     (no write)

        Per key:  {absent} ─first request─► {pending-or-done, expiry=T+TTL}
                  {pending-or-done} ─TTL elapsed / failure─► {absent}

Guardrails:
    ❌ DON'T: Route primary span records through this executor
    ✅ DO: Use it only for idempotent secondary-index writes

    ❌ DON'T: Share one executor across event loops
    ✅ DO: Create the span consumer inside the loop that drives it

Tags:
    dedup, ttl, cache, idempotent-writes, asyncio, tracestore
"""

from __future__ import annotations

import asyncio
import functools
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass

from tracestore.core.errors import ConfigError
from tracestore.core.logging import get_logger
from tracestore.core.protocols import BoundWrite, Session

logger = get_logger(__name__)


@dataclass(frozen=True)
class TraceServiceSpanNameKey:
    """Dedup key of a ``trace_by_service_span`` row.

    ``timestamp_millis`` is the coarse component of the row's time-ordered
    id; the random low bits are deliberately left out.
    """

    service_name: str
    span_name: str
    bucket: int
    timestamp_millis: int


@dataclass(frozen=True)
class ServiceSpanNameKey:
    """Dedup key of a ``span_name_by_service`` row."""

    service_name: str
    span_name: str


@dataclass
class _Entry:
    expires_at: float
    future: asyncio.Future[None]


def _failed(future: asyncio.Future[None]) -> bool:
    return future.done() and (future.cancelled() or future.exception() is not None)


class DeduplicatingExecutor:
    """TTL-bounded "write at most once per window" layer over a session.

    Args:
        session: Session that executes the underlying writes.
        ttl_seconds: How long an issued write suppresses identical ones.
        clock: Monotonic time source (seconds); injectable for tests.
        max_size: Entry count at which expired entries are swept and, if
            still full, the oldest entry is dropped.
    """

    def __init__(
        self,
        session: Session,
        ttl_seconds: float = 60 * 60,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_size: int = 100_000,
    ) -> None:
        if ttl_seconds <= 0:
            raise ConfigError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._session = session
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_size = max_size
        self._entries: dict[Hashable, _Entry] = {}
        self._issued = 0
        self._suppressed = 0

    def maybe_execute(self, bound: BoundWrite, key: Hashable) -> asyncio.Future[None]:
        """Execute ``bound`` unless a write for ``key`` is live.

        Must be called from within a running event loop. The returned
        future is already scheduled; awaiting it only observes the outcome.
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at > now and not _failed(entry.future):
            self._suppressed += 1
            logger.debug("dedup.suppressed", statement=bound.name, key=repr(key))
            if entry.future.done():
                return _completed()
            return asyncio.shield(entry.future)

        if entry is None and len(self._entries) >= self._max_size:
            self._evict(now)

        future = asyncio.ensure_future(self._session.execute(bound))
        entry = _Entry(expires_at=now + self._ttl, future=future)
        self._entries.pop(key, None)  # re-insert at the young end
        self._entries[key] = entry
        self._issued += 1
        future.add_done_callback(functools.partial(self._on_done, key, entry))
        return future

    def _on_done(self, key: Hashable, entry: _Entry, future: asyncio.Future[None]) -> None:
        if _failed(future) and self._entries.get(key) is entry:
            del self._entries[key]
            logger.debug("dedup.invalidated", key=repr(key))

    def _evict(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for k in expired:
            del self._entries[k]
        if len(self._entries) >= self._max_size:
            # dicts keep insertion order, so this is the oldest entry
            del self._entries[next(iter(self._entries))]

    def size(self) -> int:
        """Number of remembered keys, expired ones included until swept."""
        return len(self._entries)

    def clear(self) -> None:
        """Forget every key."""
        self._entries.clear()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def stats(self) -> dict[str, int]:
        return {"issued": self._issued, "suppressed": self._suppressed, "size": self.size()}


def _completed() -> asyncio.Future[None]:
    future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    future.set_result(None)
    return future


__all__ = ["DeduplicatingExecutor", "ServiceSpanNameKey", "TraceServiceSpanNameKey"]
