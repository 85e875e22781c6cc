"""Cache entries: one file on disk regenerated by a producer callback.

An entry starts out as a :class:`LazyCacheEntry`, whose file may not exist
yet. Calling :meth:`LazyCacheEntry.init` creates the file if needed and
returns a :class:`CacheEntry`, which is known to have been materialized.
Both phases share every other operation.

Entries are not safe for concurrent use. The lock flag is local state of
the entry object; it is not seen by other processes or by other entry
objects pointing at the same file, and it does not stop refreshes.
"""

import contextlib
import copy
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterator, Optional

from fcache.errors import (
    CacheIOError,
    CallbackError,
    FileAlreadyExistsError,
    FileAlreadyLockedError,
    FileAlreadyUnlockedError,
)
from fcache.paths import remove_and_prune
from fcache.validation import (
    IntervalLike,
    get_valid_until,
    is_mtime_valid,
    to_interval,
)

logger = logging.getLogger(__name__)

Producer = Callable[[BinaryIO], Any]


@dataclass(frozen=True)
class RootSettings:
    """Immutable description of a cache root, shared by its entries.

    Attributes:
        path: Canonical absolute root directory
        refresh_interval: Default refresh interval for new entries
        owner: Temporary directory kept alive while the root is in use
    """

    path: Path
    refresh_interval: timedelta
    owner: Optional[tempfile.TemporaryDirectory] = field(
        default=None, repr=False, compare=False
    )


@contextlib.contextmanager
def _io_errors(path: Path, action: str) -> Iterator[None]:
    try:
        yield
    except OSError as e:
        raise CacheIOError(f"Cannot {action} {path}: {e}", path) from e


class _BaseEntry:
    """Operations shared by both entry phases."""

    def __init__(
        self,
        path: Path,
        producer: Producer,
        refresh_interval: IntervalLike,
        root: RootSettings,
    ):
        self._path = Path(path)
        self._producer = producer
        self._refresh_interval = to_interval(refresh_interval)
        self._root = root
        self._locked = False

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(path={str(self._path)!r}, "
            f"refresh_interval={self._refresh_interval!r}, locked={self._locked})"
        )

    # ==================== Configuration ====================

    @property
    def path(self) -> Path:
        """Absolute path of the backing file."""
        return self._path

    @property
    def name(self) -> str:
        """File name of the backing file."""
        return self._path.name

    @property
    def refresh_interval(self) -> timedelta:
        return self._refresh_interval

    def _evolve(self, **changes):
        clone = copy.copy(self)
        for attr, value in changes.items():
            setattr(clone, f"_{attr}", value)
        return clone

    def with_refresh_interval(self, refresh_interval: IntervalLike):
        """Return a copy of this entry using another refresh interval."""
        return self._evolve(refresh_interval=to_interval(refresh_interval))

    def with_default_refresh_interval(self):
        """Return a copy of this entry using the root's refresh interval."""
        return self._evolve(refresh_interval=self._root.refresh_interval)

    # ==================== Locking ====================

    def is_locked(self) -> bool:
        return self._locked

    def is_unlocked(self) -> bool:
        return not self._locked

    def lock(self) -> None:
        """Set the advisory lock flag.

        Raises:
            FileAlreadyLockedError: If the entry is already locked
        """
        if self._locked:
            raise FileAlreadyLockedError(self._path)
        self._locked = True

    def unlock(self) -> None:
        """Clear the advisory lock flag.

        Raises:
            FileAlreadyUnlockedError: If the entry is not locked
        """
        if not self._locked:
            raise FileAlreadyUnlockedError(self._path)
        self._locked = False

    # ==================== Validity ====================

    def is_valid(self) -> bool:
        """Check whether the file was modified within the refresh interval.

        Raises:
            CacheIOError: If the file metadata cannot be read
            CacheSystemTimeError: If the modification time lies in the future
        """
        return is_mtime_valid(self._path, self._refresh_interval)

    def is_invalid(self) -> bool:
        return not self.is_valid()

    def valid_until(self) -> datetime:
        """Get the UTC instant at which the file content becomes stale."""
        return get_valid_until(self._path, self._refresh_interval)

    # ==================== File operations ====================

    def _run_producer(self, handle: BinaryIO) -> None:
        try:
            self._producer(handle)
        except Exception as e:
            logger.warning(f"Producer failed for {self._path}: {e}")
            raise CallbackError(e, self._path) from e

    def _open_read(self) -> BinaryIO:
        with _io_errors(self._path, "open"):
            return open(self._path, "rb")

    def _create(self) -> BinaryIO:
        try:
            handle = open(self._path, "xb")
        except FileExistsError as e:
            raise FileAlreadyExistsError(self._path) from e
        except OSError as e:
            raise CacheIOError(f"Cannot create {self._path}: {e}", self._path) from e

        logger.debug(f"Creating cache file {self._path}")
        with _io_errors(self._path, "write"), handle:
            self._run_producer(handle)
        return self._open_read()

    def open(self) -> BinaryIO:
        """Open the file for reading, creating or refreshing it first.

        A missing file is created by the producer. An existing file is
        regenerated when it is stale.

        Returns:
            Binary file object opened read-only; the caller closes it
        """
        if self._path.exists():
            self.refresh()
            return self._open_read()
        return self._create()

    def refresh(self) -> None:
        """Regenerate the file content if it is stale."""
        if self.is_invalid():
            logger.debug(f"Cache file {self._path} is stale, refreshing")
            self.force_refresh()

    def force_refresh(self) -> None:
        """Truncate the file and run the producer again, ignoring validity."""
        with _io_errors(self._path, "truncate"):
            fd = os.open(self._path, os.O_WRONLY | os.O_TRUNC)
            handle = os.fdopen(fd, "wb")

        logger.debug(f"Refreshing cache file {self._path}")
        with _io_errors(self._path, "write"), handle:
            self._run_producer(handle)

    def remove(self) -> None:
        """Delete the file and any parent directories left empty.

        Directories are pruned upwards until the cache root, which is
        never removed. Nothing happens if the file does not exist.
        """
        remove_and_prune(self._path, self._root.path)


class LazyCacheEntry(_BaseEntry):
    """A cache entry whose file is created on first access.

    Examples:
        >>> entry = cache.get_lazy("uptime.txt", lambda f: f.write(b"42"))
        >>> entry.path.exists()
        False
        >>> with entry.open() as f:
        ...     f.read()
        b'42'
    """

    def __init__(
        self,
        path: Path,
        producer: Producer,
        refresh_interval: IntervalLike,
        root: RootSettings,
    ):
        """Initialize lazy entry.

        Args:
            path: Absolute path of the backing file inside the root
            producer: Callable writing the file content to a binary handle
            refresh_interval: Time-to-live of the file content
            root: Settings of the owning cache root

        Raises:
            FileAlreadyExistsError: If a file already exists at ``path``
        """
        if Path(path).exists():
            raise FileAlreadyExistsError(Path(path))
        super().__init__(path, producer, refresh_interval, root)

    def create(self) -> BinaryIO:
        """Create the file with the producer and open it for reading.

        Raises:
            FileAlreadyExistsError: If the file appeared in the meantime
            CallbackError: If the producer fails; the partial file is kept
            CacheIOError: If the file cannot be created or reopened
        """
        return self._create()

    def init(self) -> "CacheEntry":
        """Materialize the entry, creating its file if it does not exist."""
        return CacheEntry(self)


class CacheEntry(_BaseEntry):
    """A cache entry whose file is known to exist on disk.

    Instances are obtained from :meth:`FileCache.get` or
    :meth:`LazyCacheEntry.init`.
    """

    def __init__(self, lazy: LazyCacheEntry):
        if not lazy.path.exists():
            lazy.create().close()
        super().__init__(lazy.path, lazy._producer, lazy.refresh_interval, lazy._root)
        self._locked = lazy._locked
