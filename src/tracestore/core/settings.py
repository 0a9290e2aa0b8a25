"""Settings for the tracestore write path.

Every tunable of the span consumer lives here so the same code runs
unchanged in tests, on a laptop, and in production.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not at first write
    - **Environment-driven:** Reads ``TRACESTORE_*`` env vars and ``.env``
    - **Sensible defaults:** One hour dedup TTL, one day duration buckets

Features:
    - **TraceStoreSettings:** keyspace, TTLs, bucket window, backend paths
    - **get_settings():** cached loader, ``clear_settings_cache()`` for tests
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> from tracestore.core.settings import TraceStoreSettings
    >>> s = TraceStoreSettings(written_names_ttl_seconds=60)
    >>> s.written_names_ttl_seconds
    60.0

Tags:
    settings, configuration, pydantic, environment, tracestore
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TIME_WINDOW_COMPACTION = "TimeWindowCompactionStrategy"
SIZE_TIERED_COMPACTION = "SizeTieredCompactionStrategy"


class TraceStoreSettings(BaseSettings):
    """tracestore configuration.

    All fields can be set via ``TRACESTORE_*`` environment variables (e.g.
    ``TRACESTORE_WRITTEN_NAMES_TTL_SECONDS=600``) or a ``.env`` file.

    Fields
    ──────
    keyspace                        : Logical keyspace / database name
    written_names_ttl_seconds       : How long an index write stays deduplicated
    duration_bucket_window_seconds  : Width of one duration-index bucket
    compaction_class                : Compaction strategy reported by the store
    database                        : SQLite path used by the CLI backend
    log_level                       : Structlog log level
    json_logs                       : Force JSON (True) or console (False) logs
    """

    model_config = SettingsConfigDict(
        env_prefix="TRACESTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    keyspace: str = Field(default="tracestore")
    compaction_class: str = Field(
        default=SIZE_TIERED_COMPACTION,
        description="Compaction strategy class name of the traces table",
    )
    database: str = Field(default="tracestore.db")

    # ── Write path ───────────────────────────────────────────────
    written_names_ttl_seconds: float = Field(
        default=60 * 60,
        description="TTL of the deduplicating executor",
    )
    duration_bucket_window_seconds: int = Field(
        default=24 * 60 * 60,
        description="Window size of the duration index buckets",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    json_logs: bool | None = Field(default=None)

    @field_validator("written_names_ttl_seconds", "duration_bucket_window_seconds")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, TraceStoreSettings] = {}


def get_settings(*, _force_reload: bool = False) -> TraceStoreSettings:
    """Load, validate, and cache a :class:`TraceStoreSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = TraceStoreSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "SIZE_TIERED_COMPACTION",
    "TIME_WINDOW_COMPACTION",
    "TraceStoreSettings",
    "clear_settings_cache",
    "get_settings",
]
