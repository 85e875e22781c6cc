"""Cache root: owns a directory and the default refresh interval."""

import dataclasses
import logging
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Optional

from fcache.config import (
    DEFAULT_PREFIX,
    DEFAULT_REFRESH_SECONDS,
    CacheConfig,
    get_global_config,
)
from fcache.entry import CacheEntry, LazyCacheEntry, Producer, RootSettings
from fcache.errors import CacheIOError, CacheNotADirectoryError
from fcache.paths import PathLike, resolve_entry_path
from fcache.validation import IntervalLike, to_interval

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = timedelta(seconds=DEFAULT_REFRESH_SECONDS)


class FileCache:
    """A directory of cache files, each regenerated by its own producer.

    Roots are either bound to a persistent directory or own a temporary
    directory that is deleted once neither the root nor any of its entries
    is referenced anymore (or when :meth:`cleanup` is called). Roots are
    immutable and can be shared between threads; ``with_*`` methods return
    new roots.

    Examples:
        >>> cache = FileCache.with_directory("~/.cache/reports")
        >>> entry = cache.get("daily.csv", lambda f: f.write(b"a,b\\n1,2\\n"))
        >>> with entry.open() as f:
        ...     f.read()
        b'a,b\\n1,2\\n'
    """

    def __init__(self, settings: RootSettings):
        self._settings = settings

    def __repr__(self) -> str:
        kind = "temporary" if self.is_temporary else "directory"
        return (
            f"FileCache({kind}, path={str(self.path)!r}, "
            f"refresh_interval={self.refresh_interval!r})"
        )

    def __enter__(self) -> "FileCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    # ==================== Construction ====================

    @classmethod
    def new_temporary(cls) -> "FileCache":
        """Create a cache in a new temporary directory."""
        return cls.with_prefix(DEFAULT_PREFIX)

    @classmethod
    def with_prefix(cls, prefix: str) -> "FileCache":
        """Create a cache in a new temporary directory named with ``prefix``."""
        try:
            temp_dir = tempfile.TemporaryDirectory(prefix=prefix)
        except OSError as e:
            raise CacheIOError(f"Cannot create temporary cache directory: {e}") from e

        root = cls._prepare_directory(Path(temp_dir.name))
        logger.debug(f"Created temporary cache at {root}")
        return cls(RootSettings(root, DEFAULT_REFRESH_INTERVAL, owner=temp_dir))

    @classmethod
    def with_directory(cls, directory: PathLike) -> "FileCache":
        """Create a cache rooted at ``directory``, creating it if missing.

        Raises:
            CacheNotADirectoryError: If ``directory`` exists but is not a directory
            CacheIOError: If the directory cannot be created or resolved
        """
        root = cls._prepare_directory(Path(directory).expanduser())
        return cls(RootSettings(root, DEFAULT_REFRESH_INTERVAL))

    @classmethod
    def from_config(cls, config: Optional[CacheConfig] = None) -> "FileCache":
        """Create a cache described by a configuration.

        Args:
            config: Cache configuration (uses global if None)
        """
        config = config or get_global_config()
        if config.cache_dir is None:
            cache = cls.with_prefix(config.prefix)
        else:
            cache = cls.with_directory(config.cache_dir)
        return cache.with_refresh_interval(config.refresh_timedelta)

    @staticmethod
    def _prepare_directory(directory: Path) -> Path:
        if directory.exists() and not directory.is_dir():
            raise CacheNotADirectoryError(directory)

        try:
            directory.mkdir(parents=True, exist_ok=True)
            return directory.resolve(strict=True)
        except OSError as e:
            raise CacheIOError(
                f"Cannot access cache directory {directory}: {e}", directory
            ) from e

    # ==================== Configuration ====================

    @property
    def path(self) -> Path:
        """Canonical absolute root directory."""
        return self._settings.path

    @property
    def refresh_interval(self) -> timedelta:
        """Refresh interval given to entries created from now on."""
        return self._settings.refresh_interval

    @property
    def is_temporary(self) -> bool:
        return self._settings.owner is not None

    def with_refresh_interval(self, refresh_interval: IntervalLike) -> "FileCache":
        """Return a root whose new entries use ``refresh_interval``.

        Entries already created keep their own interval.
        """
        settings = dataclasses.replace(
            self._settings, refresh_interval=to_interval(refresh_interval)
        )
        return FileCache(settings)

    def with_default_refresh_interval(self) -> "FileCache":
        return self.with_refresh_interval(DEFAULT_REFRESH_INTERVAL)

    # ==================== Entries ====================

    def get(self, path: PathLike, producer: Producer) -> CacheEntry:
        """Get an entry, creating its file right away.

        Args:
            path: Entry path relative to the cache root
            producer: Callable writing the file content to a binary handle

        Returns:
            Materialized cache entry

        Raises:
            InvalidPathError: If the path is malformed
            PathTraversalError: If the path resolves outside the cache root
            FileAlreadyExistsError: If the file already exists
            CallbackError: If the producer fails
            CacheIOError: If a filesystem operation fails
        """
        return self.get_lazy(path, producer).init()

    def get_lazy(self, path: PathLike, producer: Producer) -> LazyCacheEntry:
        """Get an entry whose file is created on first :meth:`~LazyCacheEntry.open`.

        Parent directories are created immediately; the file itself is not.
        Raises the same errors as :meth:`get` except ``CallbackError``.
        """
        file_path = resolve_entry_path(self._settings.path, path)
        return LazyCacheEntry(
            file_path, producer, self._settings.refresh_interval, self._settings
        )

    # ==================== Lifecycle ====================

    def cleanup(self) -> None:
        """Delete the temporary directory now.

        Does nothing for caches bound to a persistent directory.
        """
        if self._settings.owner is not None:
            logger.debug(f"Deleting temporary cache at {self.path}")
            self._settings.owner.cleanup()
