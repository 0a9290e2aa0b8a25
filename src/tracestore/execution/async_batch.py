"""Async write batch — join a fan-out of in-flight writes into one outcome.

WHY
───
Ingesting a batch of spans produces many independent writes (one primary
record per span plus several index records). Every write is dispatched the
moment it is built; nothing waits for a previous write. ``AsyncWriteBatch``
is the barrier at the end: it awaits all of them, records per-write status,
and folds the outcome into a single success or :class:`BatchWriteError`.

ARCHITECTURE
────────────
::

    AsyncWriteBatch
      ├── .add(name, awaitable)      ─ register an already-dispatched write
      ├── .run_all()                 ─ gather(shield(...), return_exceptions=True)
      └── AsyncWriteResult           ─ succeeded / failed / items
            └── .raise_for_failures() ─ BatchWriteError(first failure)

Writes are not cancelled when one fails, nor when the caller stops waiting
for the batch. Nothing is retried here.

Example::

    batch = AsyncWriteBatch()
    batch.add("insert-span", asyncio.ensure_future(session.execute(bound)))
    result = await batch.run_all()
    result.raise_for_failures()
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tracestore.core.errors import BatchWriteError
from tracestore.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AsyncWriteItem:
    """A single write in an async batch."""

    name: str
    awaitable: Awaitable[Any] = field(repr=False)
    status: str = "pending"
    error: BaseException | None = None
    completed_at: datetime | None = None


@dataclass
class AsyncWriteResult:
    """Aggregate result of joining an async write batch."""

    batch_id: str
    items: list[AsyncWriteItem]
    started_at: datetime
    completed_at: datetime

    @property
    def succeeded(self) -> int:
        """Number of writes that completed successfully."""
        return sum(1 for i in self.items if i.status == "completed")

    @property
    def failed(self) -> int:
        """Number of writes that failed."""
        return sum(1 for i in self.items if i.status == "failed")

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def duration_seconds(self) -> float:
        """Wall-clock time spent waiting on the batch."""
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def first_error(self) -> BaseException | None:
        for item in self.items:
            if item.error is not None:
                return item.error
        return None

    def raise_for_failures(self) -> None:
        """Raise :class:`BatchWriteError` if any write failed."""
        if self.ok:
            return
        raise BatchWriteError(
            failed=self.failed,
            total=self.total,
            cause=self.first_error,
        ).with_context(batch_id=self.batch_id)

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / CLI output."""
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "duration_seconds": self.duration_seconds,
            "errors": [
                {"name": i.name, "error": str(i.error)}
                for i in self.items
                if i.error is not None
            ],
        }


class AsyncWriteBatch:
    """Barrier over concurrently dispatched writes.

    Unlike a work queue, items are registered *after* they were dispatched:
    the caller owns scheduling and this class only joins and reports.
    """

    def __init__(self) -> None:
        self._items: list[AsyncWriteItem] = []
        self._batch_id = str(uuid.uuid4())

    def add(self, name: str, awaitable: Awaitable[Any]) -> AsyncWriteBatch:
        """Register an in-flight write.

        Returns:
            ``self`` for fluent chaining.
        """
        self._items.append(AsyncWriteItem(name=name, awaitable=awaitable))
        return self

    async def run_all(self) -> AsyncWriteResult:
        """Wait for every registered write and collect the outcome."""
        started_at = datetime.now(UTC)

        # cancelling the join must not cancel writes already on the wire
        results = await asyncio.gather(
            *[asyncio.shield(item.awaitable) for item in self._items],
            return_exceptions=True,
        )

        completed_at = datetime.now(UTC)
        for item, outcome in zip(self._items, results):
            item.completed_at = completed_at
            if isinstance(outcome, BaseException):
                item.status = "failed"
                item.error = outcome
                logger.warning(
                    "write_batch.item_failed",
                    batch_id=self._batch_id,
                    name=item.name,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
            else:
                item.status = "completed"

        result = AsyncWriteResult(
            batch_id=self._batch_id,
            items=self._items,
            started_at=started_at,
            completed_at=completed_at,
        )

        logger.debug(
            "write_batch.complete",
            batch_id=self._batch_id,
            succeeded=result.succeeded,
            failed=result.failed,
            duration_seconds=result.duration_seconds,
        )
        return result

    @property
    def item_count(self) -> int:
        """Number of writes registered."""
        return len(self._items)

    @property
    def batch_id(self) -> str:
        return self._batch_id


__all__ = ["AsyncWriteBatch", "AsyncWriteItem", "AsyncWriteResult"]
