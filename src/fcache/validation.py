"""Cache validation utilities based on file modification times."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Union

from fcache.errors import CacheIOError, CacheSystemTimeError

IntervalLike = Union[timedelta, int, float]

NEVER_EXPIRES = timedelta.max

_LATEST = datetime.max.replace(tzinfo=timezone.utc)


def to_interval(value: IntervalLike) -> timedelta:
    """Normalize a refresh interval to a ``timedelta``.

    Args:
        value: A ``timedelta`` or a number of seconds

    Returns:
        The interval as a ``timedelta``

    Raises:
        ValueError: If the interval is negative
        TypeError: If the value is not a duration
    """
    if isinstance(value, timedelta):
        interval = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            raise ValueError(f"Refresh interval must not be negative: {value}s")
        try:
            interval = timedelta(seconds=value)
        except OverflowError:
            # inf and anything past timedelta.max never expire
            return NEVER_EXPIRES
    else:
        raise TypeError(f"Refresh interval must be a timedelta or seconds, got {value!r}")

    if interval < timedelta(0):
        raise ValueError(f"Refresh interval must not be negative: {interval}")
    return interval


def get_modified_time(path: Path) -> datetime:
    """Get the last modification time of a file as an aware UTC datetime.

    Raises:
        CacheIOError: If the file metadata cannot be read
    """
    try:
        mtime_ns = os.stat(path).st_mtime_ns
    except OSError as e:
        raise CacheIOError(f"Cannot read modification time of {path}: {e}", path) from e
    return datetime.fromtimestamp(mtime_ns / 1e9, tz=timezone.utc)


def get_elapsed(path: Path) -> timedelta:
    """Get time elapsed since the file was last modified.

    Raises:
        CacheIOError: If the file metadata cannot be read
        CacheSystemTimeError: If the modification time lies in the future
    """
    modified = get_modified_time(path)
    now = datetime.now(timezone.utc)
    if modified > now:
        raise CacheSystemTimeError(
            f"Modification time of {path} ({modified.isoformat()}) is later than "
            f"the current time ({now.isoformat()})",
            path,
        )
    return now - modified


def is_mtime_valid(path: Path, refresh_interval: timedelta) -> bool:
    """Check if a cached file is still fresh.

    Args:
        path: Path to the cached file
        refresh_interval: Time-to-live of the file content

    Returns:
        True if the file was modified less than ``refresh_interval`` ago
    """
    return get_elapsed(path) < refresh_interval


def get_valid_until(path: Path, refresh_interval: timedelta) -> datetime:
    """Get the instant at which a cached file becomes stale.

    Intervals too large for the calendar are clamped to ``datetime.max``.
    """
    modified = get_modified_time(path)
    try:
        return modified + refresh_interval
    except OverflowError:
        return _LATEST


def get_ttl_remaining(path: Path, refresh_interval: timedelta) -> timedelta:
    """Get time remaining until a cached file becomes stale.

    Returns:
        Remaining time, never negative
    """
    remaining = refresh_interval - get_elapsed(path)
    return max(timedelta(0), remaining)
