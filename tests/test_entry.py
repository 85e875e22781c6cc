"""Unit tests for cache entries."""

import os
import time
from datetime import datetime, timedelta, timezone

import pytest

import fcache
from fcache import (
    CacheEntry,
    CacheIOError,
    CacheSystemTimeError,
    CallbackError,
    FileAlreadyExistsError,
)

TEST_CONTENT = b"The quick brown fox jumps over the lazy dog.\n"


def write_content(f):
    f.write(TEST_CONTENT)


@pytest.fixture
def cache():
    """Create temporary cache."""
    with fcache.new() as cache:
        yield cache


class TestCacheEntry:
    """Test materialized entries."""

    def test_get_file(self, cache):
        """Test that content written by the producer can be read back."""
        entry = cache.get("file.txt", write_content)

        assert entry.name == "file.txt"
        assert entry.path.name == entry.name
        assert entry.path.exists()

        with entry.open() as f:
            assert f.read() == TEST_CONTENT

    def test_open_is_read_only(self, cache):
        """Test that opened files cannot be written."""
        entry = cache.get("file.txt", write_content)

        with entry.open() as f:
            assert f.readable()
            assert not f.writable()

    def test_large_file_content(self, cache):
        """Test that large content is written and read completely."""
        content = os.urandom(4 * 1024 * 1024)
        entry = cache.get("large.bin", lambda f: f.write(content))

        with entry.open() as f:
            assert f.read() == content

    def test_nested_entry(self, cache):
        """Test that nested entries live below the root."""
        entry = cache.get("a/b/c/d/file.txt", write_content)

        assert entry.name == "file.txt"
        assert entry.path == cache.path / "a" / "b" / "c" / "d" / "file.txt"

    def test_repr(self, cache):
        """Test that repr shows the entry state without the producer."""
        entry = cache.get("file.txt", write_content)

        text = repr(entry)
        assert text.startswith("CacheEntry(")
        assert "file.txt" in text
        assert "locked=False" in text

    def test_with_refresh_interval(self, cache):
        """Test that the entry interval can be overridden."""
        entry = cache.get("file.txt", write_content).with_refresh_interval(
            timedelta(seconds=10)
        )

        assert isinstance(entry, CacheEntry)
        assert entry.refresh_interval == timedelta(seconds=10)

    def test_with_default_refresh_interval(self, cache):
        """Test that the root interval can be restored."""
        entry = cache.get("file.txt", write_content).with_refresh_interval(10)

        entry = entry.with_default_refresh_interval()

        assert entry.refresh_interval == cache.refresh_interval

    def test_with_refresh_interval_has_no_io(self, cache):
        """Test that interval overrides do not touch the file."""
        entry = cache.get("file.txt", write_content)
        entry.path.unlink()

        entry.with_refresh_interval(1)

        assert not entry.path.exists()


class TestLazyCacheEntry:
    """Test entries created on first access."""

    def test_open_creates_file(self, cache):
        """Test that the first open runs the producer."""
        entry = cache.get_lazy("file.txt", write_content)
        assert not entry.path.exists()

        with entry.open() as f:
            assert entry.path.exists()
            assert f.read() == TEST_CONTENT

    def test_producer_runs_once_within_interval(self, cache):
        """Test that a second open within the interval reuses the file."""
        calls = []

        def producer(f):
            calls.append(1)
            f.write(b"x")

        entry = cache.get_lazy("file.txt", producer)

        entry.open().close()
        entry.open().close()

        assert len(calls) == 1

    def test_create(self, cache):
        """Test explicit creation."""
        entry = cache.get_lazy("file.txt", write_content)

        with entry.create() as f:
            assert f.read() == TEST_CONTENT

    def test_construct_over_existing_file_fails(self, cache):
        """Test that existence is checked when the lazy entry is built."""
        (cache.path / "file.txt").write_bytes(b"old")

        with pytest.raises(FileAlreadyExistsError) as exc_info:
            cache.get_lazy("file.txt", write_content)

        assert exc_info.value.path == cache.path / "file.txt"

    def test_concurrent_create_single_winner(self, cache):
        """Test that only the first of two creators succeeds."""
        first = cache.get_lazy("file.txt", lambda f: f.write(b"first"))
        second = cache.get_lazy("file.txt", lambda f: f.write(b"second"))

        first.create().close()
        with pytest.raises(FileAlreadyExistsError):
            second.create()

        assert first.path.read_bytes() == b"first"

    def test_init_creates_file(self, cache):
        """Test that init materializes a missing file."""
        entry = cache.get_lazy("file.txt", write_content).init()

        assert isinstance(entry, CacheEntry)
        assert entry.path.read_bytes() == TEST_CONTENT

    def test_init_keeps_existing_file(self, cache):
        """Test that init does not run the producer for a created file."""
        calls = []

        def producer(f):
            calls.append(1)

        lazy = cache.get_lazy("file.txt", producer)
        lazy.open().close()

        entry = lazy.init()

        assert len(calls) == 1
        assert entry.path == lazy.path

    def test_init_keeps_settings(self, cache):
        """Test that materialization keeps interval and lock state."""
        lazy = cache.get_lazy("file.txt", write_content).with_refresh_interval(42)
        lazy.lock()

        entry = lazy.init()

        assert entry.refresh_interval == timedelta(seconds=42)
        assert entry.is_locked()

    def test_init_from_constructor(self, cache):
        """Test building an initialized entry directly from a lazy one."""
        lazy = cache.get_lazy("sub/file.txt", write_content)

        entry = CacheEntry(lazy)

        assert entry.path == lazy.path
        assert entry.name == "file.txt"
        assert entry.is_unlocked()
        assert entry.with_default_refresh_interval().refresh_interval == (
            cache.refresh_interval
        )
        assert repr(entry).startswith("CacheEntry(path=")
        with entry.open() as f:
            assert f.read() == TEST_CONTENT

    def test_with_default_refresh_interval_uses_root(self):
        """Test that the default refers to the interval of the creating root."""
        cache = fcache.new().with_refresh_interval(timedelta(minutes=2))
        entry = cache.get_lazy("file.txt", write_content).with_refresh_interval(1)

        assert entry.with_default_refresh_interval().refresh_interval == timedelta(
            minutes=2
        )


class TestCallbackErrors:
    """Test producer failures."""

    def test_get_wraps_producer_error(self, cache):
        """Test that producer exceptions surface as CallbackError."""

        def failing(f):
            int("fail")

        with pytest.raises(CallbackError) as exc_info:
            cache.get("file.txt", failing)

        assert isinstance(exc_info.value.error, ValueError)
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_producer_oserror_is_callback_error(self, cache):
        """Test that OS errors raised by the producer are not reported as IO errors."""

        def failing(f):
            raise FileNotFoundError("upstream missing")

        with pytest.raises(CallbackError):
            cache.get("file.txt", failing)

    def test_partial_file_kept(self, cache):
        """Test that a failed creation leaves the partial file on disk."""

        def failing(f):
            f.write(b"partial")
            raise RuntimeError("boom")

        entry = cache.get_lazy("file.txt", failing)
        with pytest.raises(CallbackError):
            entry.open()

        assert entry.path.read_bytes() == b"partial"

    def test_force_refresh_wraps_producer_error(self, cache):
        """Test that refresh failures surface as CallbackError."""
        calls = []

        def flaky(f):
            calls.append(1)
            if len(calls) > 1:
                raise RuntimeError("boom")

        entry = cache.get("file.txt", flaky)

        with pytest.raises(CallbackError):
            entry.force_refresh()


class TestValidity:
    """Test validity queries."""

    def test_valid_after_creation(self, cache):
        """Test that a fresh file is valid."""
        entry = cache.get("file.txt", write_content)

        assert entry.is_valid()
        assert not entry.is_invalid()

    def test_zero_interval_always_invalid(self, cache):
        """Test that a zero interval makes the file stale immediately."""
        entry = cache.get("file.txt", write_content).with_refresh_interval(0)

        assert entry.is_invalid()

    def test_invalid_after_interval(self, cache):
        """Test that the file becomes stale once the interval has passed."""
        entry = cache.get("file.txt", write_content).with_refresh_interval(0.05)

        time.sleep(0.1)

        assert entry.is_invalid()

    def test_old_mtime_invalid(self, cache):
        """Test that validity follows the file modification time."""
        entry = cache.get("file.txt", write_content)
        old = time.time() - 3600
        os.utime(entry.path, (old, old))

        assert entry.is_invalid()

    def test_never_expires(self, cache):
        """Test that timedelta.max keeps old files valid."""
        entry = cache.get("file.txt", write_content).with_refresh_interval(
            timedelta.max
        )
        os.utime(entry.path, (0, 0))

        assert entry.is_valid()

    def test_valid_until(self, cache):
        """Test that the expiry is modification time plus interval."""
        entry = cache.get("file.txt", write_content).with_refresh_interval(30)
        os.utime(entry.path, (1_700_000_000, 1_700_000_000))

        expected = datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
        assert entry.valid_until() == expected + timedelta(seconds=30)

    def test_valid_until_clamped(self, cache):
        """Test that an unbounded interval yields the latest datetime."""
        entry = cache.get("file.txt", write_content).with_refresh_interval(
            timedelta.max
        )

        assert entry.valid_until() == datetime.max.replace(tzinfo=timezone.utc)

    def test_missing_file_raises_io_error(self, cache):
        """Test that validity of a vanished file is an IO error."""
        entry = cache.get("file.txt", write_content)
        entry.path.unlink()

        with pytest.raises(CacheIOError):
            entry.is_valid()
        with pytest.raises(CacheIOError):
            entry.valid_until()

    def test_lazy_missing_file_raises_io_error(self, cache):
        """Test that validity is not defaulted before creation."""
        entry = cache.get_lazy("file.txt", write_content)

        with pytest.raises(CacheIOError):
            entry.is_invalid()

    def test_future_mtime_raises_system_time_error(self, cache):
        """Test that a modification time in the future cannot be evaluated."""
        entry = cache.get("file.txt", write_content)
        future = time.time() + 3600
        os.utime(entry.path, (future, future))

        with pytest.raises(CacheSystemTimeError):
            entry.is_valid()


class TestRemoval:
    """Test entry removal."""

    def test_file_removal(self, cache):
        """Test that remove deletes the file."""
        entry = cache.get("file.txt", write_content)

        entry.remove()

        assert not entry.path.exists()
        assert cache.path.is_dir()

    def test_nested_file_removal(self, cache):
        """Test that emptied ancestors go while a populated one stays."""
        entry = cache.get("a/b/c/d/file.txt", write_content)
        cache.get("a/b/c/file.txt", write_content)

        entry.remove()

        assert not entry.path.exists()
        assert not entry.path.parent.exists()
        assert entry.path.parent.parent.exists()

    def test_removal_prunes_to_root(self, cache):
        """Test that all emptied ancestors up to the root are removed."""
        entry = cache.get("a/b/c/file.txt", write_content)

        entry.remove()

        assert not (cache.path / "a").exists()
        assert cache.path.is_dir()

    def test_remove_missing_file(self, cache):
        """Test that removing a lazy entry that was never created is a no-op."""
        entry = cache.get_lazy("a/file.txt", write_content)

        entry.remove()

        assert (cache.path / "a").is_dir()

    def test_open_after_remove_recreates(self, cache):
        """Test that an entry can be opened again after removal."""
        entry = cache.get("file.txt", write_content)
        entry.remove()

        with entry.open() as f:
            assert f.read() == TEST_CONTENT
