"""
Time-ordered UUID helpers (stdlib-only).

Primary span records and service/span-name index rows are clustered by a
UUID whose high 64 bits encode a coarse timestamp and whose low 64 bits are
random. Rows written for the same millisecond therefore never collide, yet
still sort approximately by time inside a partition.

The coarse component follows the version-1 (time-based) UUID layout: a
60-bit count of 100-nanosecond intervals since the Gregorian epoch
(1582-10-15), split into ``time_low``, ``time_mid`` and ``time_hi`` with the
version nibble set to 1. ``start_of(ms)`` returns the smallest such value
for a given millisecond.

Examples:
    >>> start_of(0) == start_of(0)
    True
    >>> millis_of(time_ordered_uuid(1_000_000))
    1000

Tags:
    uuid, time-ordered, timestamps, tracestore, stdlib-only
"""

from __future__ import annotations

import uuid

# 100ns intervals between 1582-10-15 and 1970-01-01
_GREGORIAN_OFFSET = 0x01B21DD213814000
_INTERVALS_PER_MILLI = 10_000
_LOW_64 = (1 << 64) - 1


def start_of(millis: int) -> int:
    """Most-significant 64 bits of the smallest time UUID for ``millis``."""
    ticks = millis * _INTERVALS_PER_MILLI + _GREGORIAN_OFFSET
    time_low = ticks & 0xFFFFFFFF
    time_mid = (ticks >> 32) & 0xFFFF
    time_hi_version = ((ticks >> 48) & 0x0FFF) | 0x1000
    return (time_low << 32) | (time_mid << 16) | time_hi_version


def random_lsb() -> int:
    """Least-significant 64 bits of a random (version 4) UUID."""
    return uuid.uuid4().int & _LOW_64


def time_ordered_uuid(timestamp_micros: int | None) -> uuid.UUID:
    """Combine the coarse component of ``timestamp_micros`` with random bits.

    A missing timestamp maps to the epoch.
    """
    millis = timestamp_micros // 1000 if timestamp_micros is not None else 0
    return uuid.UUID(int=(start_of(millis) << 64) | random_lsb())


def millis_of(value: uuid.UUID) -> int:
    """Recover the epoch milliseconds encoded in a time-ordered UUID."""
    msb = value.int >> 64
    time_low = msb >> 32
    time_mid = (msb >> 16) & 0xFFFF
    time_hi = msb & 0x0FFF
    ticks = (time_hi << 48) | (time_mid << 32) | time_low
    return (ticks - _GREGORIAN_OFFSET) // _INTERVALS_PER_MILLI


__all__ = ["millis_of", "random_lsb", "start_of", "time_ordered_uuid"]
