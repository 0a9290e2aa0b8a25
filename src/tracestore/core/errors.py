"""
Structured error types for tracestore.

Provides a small hierarchy of typed errors with metadata for error
categorization, logging, and root cause analysis through error chaining.

Instead of generic exceptions that lose context, TraceStoreError and its
subclasses carry:
- **Category:** What kind of error (storage, validation, config, etc.)
- **Retryable:** Whether the caller may reasonably retry the operation
- **Context:** Structured metadata (trace id, span id, statement, table)
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different failures
    - **No internal retries:** The write path surfaces, the caller decides
    - **Rich Context:** Errors carry metadata for logging and alerting
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     TraceStoreError                          │
        │  (category, retryable, context, cause)                       │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  StorageError          ValidationError       ConfigError     │
        │  (STORAGE)             (VALIDATION)          (CONFIG)        │
        │       │                     │                                │
        │  WriteError            MalformedSpanError                    │
        │  BatchWriteError                                             │
        └─────────────────────────────────────────────────────────────┘

Taxonomy on the write path:
    (a) per-write backend failure   → WriteError / any backend exception
    (b) malformed span              → MalformedSpanError, scoped to one write
    (c) configuration mismatch      → logged warning only, never raised
    Aggregate outcome of a batch    → BatchWriteError

Examples:
    >>> error = MalformedSpanError("annotation value missing")
    >>> error.with_context(trace_id="0000000000000001", span_id="0000000000000002")
    MalformedSpanError('annotation value missing', category=VALIDATION)
    >>> error.to_dict()["category"]
    'VALIDATION'

Tags:
    error-handling, exception-hierarchy, error-context, tracestore

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure errors
    STORAGE = "STORAGE"           # Backend rejection, connection loss
    NETWORK = "NETWORK"           # Timeouts talking to the backend

    # Data errors
    VALIDATION = "VALIDATION"     # Malformed spans, unknown columns

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"             # Invalid settings

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields for the identifiers that matter on the write path; anything
    else goes into ``metadata``. ``to_dict()`` serializes only the fields
    that are set.

    Attributes:
        trace_id: Hex trace identifier of the span being written
        span_id: Hex span identifier
        statement: Name of the prepared write (e.g. ``insert-span``)
        table: Target table
        metadata: Additional key-value pairs
    """

    trace_id: str | None = None
    span_id: str | None = None
    statement: str | None = None
    table: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["trace_id", "span_id", "statement", "table"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TraceStoreError(Exception):
    """
    Base exception for all tracestore errors.

    Subclasses set ``default_category`` and ``default_retryable`` to provide
    sensible defaults for their domain.

    Examples:
        >>> error = TraceStoreError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TraceStoreError:
        """
        Add context to this error (fluent API).

        Usage:
            raise WriteError("rejected").with_context(
                statement="insert-span",
                table="traces",
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(TraceStoreError):
    """Storage backend failure.

    Backend failures are usually transient from the caller's point of view,
    so they are flagged retryable. The write path itself never retries.
    """

    default_category = ErrorCategory.STORAGE
    default_retryable = True


class WriteError(StorageError):
    """A single write was rejected by the backend."""


class BatchWriteError(StorageError):
    """
    One or more writes of an ingested batch failed.

    The batch is not fully durable. ``cause`` holds the first failure
    observed; ``failed`` and ``total`` count the fan-out writes.

    Examples:
        >>> err = BatchWriteError(failed=1, total=4, cause=WriteError("rejected"))
        >>> err.message
        '1 of 4 writes failed'
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        failed: int,
        total: int,
        cause: BaseException | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message or f"{failed} of {total} writes failed",
            cause=cause,
            context=context,
        )
        self.failed = failed
        self.total = total

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["failed"] = self.failed
        result["total"] = self.total
        return result


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(TraceStoreError):
    """Data failed validation. Never retryable."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class MalformedSpanError(ValidationError):
    """A span (or one of its annotations) cannot be encoded for storage."""


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(TraceStoreError):
    """Invalid or missing configuration."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TraceStoreError",
    "StorageError",
    "WriteError",
    "BatchWriteError",
    "ValidationError",
    "MalformedSpanError",
    "ConfigError",
]
