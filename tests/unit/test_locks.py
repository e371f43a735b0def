"""Unit tests for the reader/writer lock."""

import threading
import time

from logkeeper.core.locks import ReadWriteLock


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    def test_readers_share(self):
        """Test that two readers can hold the lock at once."""
        lock = ReadWriteLock()
        inside = threading.Barrier(2, timeout=5)

        def reader():
            with lock.read():
                inside.wait()

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert not any(t.is_alive() for t in threads)

    def test_writer_excludes_readers(self):
        """Test that a reader waits until the writer releases."""
        lock = ReadWriteLock()
        events: list[str] = []

        def reader():
            with lock.read():
                events.append("read")

        with lock.write():
            thread = threading.Thread(target=reader)
            thread.start()
            time.sleep(0.05)
            events.append("write-done")
        thread.join(timeout=5)

        assert events == ["write-done", "read"]

    def test_lock_released_on_error(self):
        """Test that an exception inside the block still releases the lock."""
        lock = ReadWriteLock()
        try:
            with lock.write():
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        with lock.read():
            pass
