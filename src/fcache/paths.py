"""Mapping of caller-supplied entry names to paths inside a cache root."""

import logging
import os
from pathlib import Path, PurePath
from typing import Union

from fcache.errors import CacheIOError, InvalidPathError, PathTraversalError

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

_SEPARATORS = tuple({"/", os.sep})


def resolve_entry_path(root: Path, relative: PathLike) -> Path:
    """Resolve an entry path relative to the cache root.

    Parent directories are created one at a time. After each step the
    accumulated path is canonicalized and checked against the root, so a
    ``..`` segment or a symlinked directory that leads outside the root is
    rejected before anything is created beyond it. Directories created
    before the escape was detected are left in place.

    Args:
        root: Canonical absolute cache root directory
        relative: Entry path relative to the root

    Returns:
        Absolute path of the entry file inside the root

    Raises:
        InvalidPathError: If the path is empty, blank, ends with a separator,
            contains a NUL byte or does not end with a plain file name
        PathTraversalError: If the path resolves outside the root
        CacheIOError: If a parent directory cannot be created or inspected

    Examples:
        >>> resolve_entry_path(Path("/tmp/cache"), "reports/daily.csv")
        PosixPath('/tmp/cache/reports/daily.csv')
    """
    raw = os.fspath(relative)
    if "\0" in raw or raw.endswith(_SEPARATORS):
        raise InvalidPathError(raw)

    parts = PurePath(raw).parts
    if not parts:
        raise InvalidPathError(raw)

    *parents, file_name = parts
    if file_name in (os.curdir, os.pardir) or file_name.endswith(_SEPARATORS):
        raise InvalidPathError(raw)
    if not file_name.strip():
        raise InvalidPathError(raw)

    path = root
    for component in parents:
        path = path / component
        try:
            if not path.exists():
                path.mkdir()
                logger.debug(f"Created cache directory {path}")
            canonical = path.resolve(strict=True)
        except OSError as e:
            raise CacheIOError(f"Cannot create cache directory {path}: {e}", path) from e

        if not canonical.is_relative_to(root):
            logger.warning(f"Rejected entry path {raw!r}: {path} escapes {root}")
            raise PathTraversalError(path, root)
        path = canonical

    return path / file_name


def remove_and_prune(path: Path, root: Path) -> None:
    """Remove a file and prune parent directories it leaves empty.

    Pruning walks upwards from the file's parent and stops at the first
    non-empty directory or at ``root``, which is never removed.

    Args:
        path: File to remove
        root: Canonical cache root bounding the pruning

    Raises:
        CacheIOError: If the file or a directory cannot be removed
    """
    if not path.exists():
        return

    try:
        path.unlink()
        logger.debug(f"Removed cache file {path}")

        parent = path.parent
        while parent != root and parent.is_relative_to(root):
            if any(parent.iterdir()):
                break
            parent.rmdir()
            logger.debug(f"Pruned empty cache directory {parent}")
            parent = parent.parent
    except OSError as e:
        raise CacheIOError(f"Cannot remove {path}: {e}", path) from e
