"""The live sink: one open file plus the strategy that decides when to replace it."""

from collections.abc import Callable
from datetime import datetime
from pathlib import Path
import os
import threading
from typing import BinaryIO, TypeAlias

from loguru import logger

from logkeeper.core.exceptions import FilesystemError
from logkeeper.core.layout import ensure_directory
from logkeeper.schemas.settings import Settings
from logkeeper.services.rotation import RotationStrategy, build_strategy

Clock: TypeAlias = Callable[[], datetime]


class ActiveWriter:
    """Appends bytes to the current log file and rotates it on demand.

    Writes are serialized by an internal lock. A failed rotation never loses
    the record being written: the writer keeps appending to the previous file
    and reports the failure once, until a later rotation succeeds.
    """

    def __init__(
        self, settings: Settings, strategy: RotationStrategy, clock: Clock | None = None
    ) -> None:
        self.settings = settings
        self.strategy = strategy
        self._clock = clock or datetime.now
        self._lock = threading.Lock()
        self._file: BinaryIO | None = None
        self._path: Path | None = None
        self.bytes_written = 0
        self.records_written = 0
        self.rotations = 0
        self._rotation_error_reported = False

        now = self._clock()
        self._open(self.strategy.path_for(now))
        self.strategy.prune(self.current_path, now)

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock | None = None) -> "ActiveWriter":
        return cls(settings, build_strategy(settings), clock=clock)

    @property
    def current_path(self) -> Path:
        """Path of the file currently receiving writes."""
        if self._path is None:
            msg = "Writer has no open file"
            raise FilesystemError(message=msg)
        return self._path

    @property
    def closed(self) -> bool:
        return self._file is None

    def _open(self, path: Path) -> None:
        ensure_directory(path.parent)
        handle = None
        try:
            handle = path.open("ab")
            size = os.fstat(handle.fileno()).st_size
        except OSError as e:
            if handle is not None:
                handle.close()
            raise FilesystemError(
                message=f"Create log file error: {e}", details={"path": str(path)}
            ) from e
        self._file = handle
        self._path = path
        self.bytes_written = size

    def _rotate_locked(self, now: datetime) -> FilesystemError | None:
        if self._file is None or self._path is None:
            msg = "Writer is closed"
            raise FilesystemError(message=msg)
        previous = self._path
        target = self.strategy.path_for(now)
        self._file.close()
        self._file = None
        try:
            previous = self.strategy.roll_over(previous, now)
            self._open(target)
        except (OSError, FilesystemError) as e:
            self._open(previous)
            if self._rotation_error_reported:
                return None
            self._rotation_error_reported = True
            logger.warning(f"Log rotation to {target} failed, still writing {previous}: {e!s}")
            return FilesystemError(
                message=f"Log rotation failed: {e}",
                details={"target": str(target), "current": str(previous)},
            )
        self._rotation_error_reported = False
        self.rotations += 1
        logger.info(f"Rotated log file to {target}")
        self.strategy.prune(self.current_path, now)
        return None

    def _append_locked(self, chunk: bytes | memoryview) -> None:
        if self._file is None:
            msg = "Writer is closed"
            raise FilesystemError(message=msg)
        try:
            self._file.write(chunk)
            self._file.flush()
        except OSError as e:
            raise FilesystemError(
                message=f"Write log file error: {e}", details={"path": str(self._path)}
            ) from e
        self.bytes_written += len(chunk)

    def write(self, data: bytes | str) -> int:
        """Append ``data``, rotating first if the strategy asks for it.

        A payload larger than what the live file may still take is split at
        the size threshold, rotating between the pieces. If a rotation fails
        the remainder goes to the file that stayed open.
        """
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        with self._lock:
            if self._file is None or self._path is None:
                msg = "Write to a closed log writer"
                raise FilesystemError(message=msg)
            now = self._clock()
            error = None
            remaining = memoryview(payload)
            while True:
                if self.strategy.needs_rotation(self._path, self.bytes_written, len(remaining), now):
                    rotations = self.rotations
                    error = self._rotate_locked(now) or error
                    if self.rotations == rotations:
                        self._append_locked(remaining)
                        break
                room = self.strategy.capacity(self.bytes_written)
                if room is None or len(remaining) <= room or room == 0:
                    self._append_locked(remaining)
                    break
                self._append_locked(remaining[:room])
                remaining = remaining[room:]
            self.records_written += 1
        if error is not None:
            raise error
        return len(payload)

    def rotate(self) -> None:
        """Force a rotation now, whatever the strategy's trigger says."""
        with self._lock:
            error = self._rotate_locked(self._clock())
        if error is not None:
            raise error

    def flush(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.flush()

    def close(self) -> None:
        """Release the file handle; closing twice is a no-op."""
        with self._lock:
            handle, self._file = self._file, None
            if handle is None:
                return
            try:
                handle.close()
            except OSError as e:
                raise FilesystemError(
                    message=f"Close log file error: {e}", details={"path": str(self._path)}
                ) from e
