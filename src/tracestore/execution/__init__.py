"""Async execution helpers for the write path."""

from tracestore.execution.async_batch import AsyncWriteBatch, AsyncWriteItem, AsyncWriteResult

__all__ = ["AsyncWriteBatch", "AsyncWriteItem", "AsyncWriteResult"]
