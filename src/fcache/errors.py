"""Exceptions raised by the file cache."""

from pathlib import Path
from typing import Optional


class CacheError(Exception):
    """Base exception for cache-related errors."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class CacheNotADirectoryError(CacheError):
    """Raised when the cache root exists but is not a directory."""

    def __init__(self, path: Path):
        super().__init__(f"Path is not a directory: {path}", path)


class PathTraversalError(CacheError):
    """Raised when an entry path would resolve outside the cache root."""

    def __init__(self, path: Path, cache_dir: Path):
        super().__init__(
            f"Path traversal detected: {path} is not within cache directory {cache_dir}",
            path,
        )
        self.cache_dir = cache_dir


class InvalidPathError(CacheError):
    """Raised when an entry path is empty, blank or names a directory."""

    def __init__(self, path):
        super().__init__(f"Invalid path: {path!r}", Path(path) if path else None)


class FileAlreadyExistsError(CacheError):
    """Raised when a lazy entry is built over a file that already exists."""

    def __init__(self, path: Path):
        super().__init__(f"File already exists: {path}", path)


class FileAlreadyLockedError(CacheError):
    """Raised when locking an entry that is already locked."""

    def __init__(self, path: Optional[Path] = None):
        super().__init__("File already locked", path)


class FileAlreadyUnlockedError(CacheError):
    """Raised when unlocking an entry that is not locked."""

    def __init__(self, path: Optional[Path] = None):
        super().__init__("File already unlocked", path)


class CallbackError(CacheError):
    """Raised when the producer fails while writing an entry.

    The producer's own exception is kept in ``error`` and as ``__cause__``.
    """

    def __init__(self, error: BaseException, path: Optional[Path] = None):
        super().__init__(str(error) or type(error).__name__, path)
        self.error = error


class CacheSystemTimeError(CacheError):
    """Raised when elapsed time since modification cannot be computed."""

    pass


class CacheIOError(CacheError):
    """Raised when an underlying filesystem operation fails."""

    pass
