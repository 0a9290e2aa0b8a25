"""
tracestore.core - shared primitives of the span write path.

Modules:
    errors      - Typed error hierarchy (TraceStoreError and friends)
    logging     - structlog configuration and helpers
    settings    - TraceStoreSettings (pydantic-settings)
    protocols   - PreparedWrite, BoundWrite, Session
    timeuuid    - Time-ordered UUID helpers
"""

from tracestore.core.errors import (
    BatchWriteError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    MalformedSpanError,
    StorageError,
    TraceStoreError,
    ValidationError,
    WriteError,
)
from tracestore.core.logging import configure_logging, get_logger
from tracestore.core.protocols import BoundWrite, PreparedWrite, Session
from tracestore.core.timeuuid import millis_of, start_of, time_ordered_uuid

__all__ = [
    # errors
    "BatchWriteError",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "MalformedSpanError",
    "StorageError",
    "TraceStoreError",
    "ValidationError",
    "WriteError",
    # logging
    "configure_logging",
    "get_logger",
    # protocols
    "BoundWrite",
    "PreparedWrite",
    "Session",
    # timeuuid
    "millis_of",
    "start_of",
    "time_ordered_uuid",
]
