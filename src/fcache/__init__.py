"""fcache: filesystem-backed cache of files regenerated by producer callbacks.

Key components:
- FileCache: Cache root, factory for entries
- LazyCacheEntry / CacheEntry: One cached file before and after creation
- CacheConfig: Configuration management
- CacheError and subclasses: Failure kinds
"""

__version__ = "0.1.0"

from fcache.cache import DEFAULT_REFRESH_INTERVAL, FileCache
from fcache.config import CacheConfig
from fcache.entry import CacheEntry, LazyCacheEntry, Producer
from fcache.errors import (
    CacheError,
    CacheIOError,
    CacheNotADirectoryError,
    CacheSystemTimeError,
    CallbackError,
    FileAlreadyExistsError,
    FileAlreadyLockedError,
    FileAlreadyUnlockedError,
    InvalidPathError,
    PathTraversalError,
)


def new() -> FileCache:
    """Create a cache in a new temporary directory."""
    return FileCache.new_temporary()


def with_prefix(prefix: str) -> FileCache:
    """Create a cache in a new temporary directory named with ``prefix``."""
    return FileCache.with_prefix(prefix)


def with_directory(directory) -> FileCache:
    """Create a cache rooted at ``directory``."""
    return FileCache.with_directory(directory)


__all__ = [
    "DEFAULT_REFRESH_INTERVAL",
    "FileCache",
    "LazyCacheEntry",
    "CacheEntry",
    "Producer",
    "CacheConfig",
    "CacheError",
    "CacheIOError",
    "CacheNotADirectoryError",
    "CacheSystemTimeError",
    "CallbackError",
    "FileAlreadyExistsError",
    "FileAlreadyLockedError",
    "FileAlreadyUnlockedError",
    "InvalidPathError",
    "PathTraversalError",
    "new",
    "with_prefix",
    "with_directory",
    "__version__",
]
