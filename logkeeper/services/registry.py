"""Process-wide holder of the active log writer.

A host constructs one :class:`LoggerRegistry` and passes it (or its handle)
to the code that logs. Installing new settings swaps the writer atomically:
readers never see a half-built writer, and the previous writer's file is
closed before the new one becomes visible. A rejected configuration leaves
the previous writer in place.
"""

from collections.abc import Callable
from pathlib import Path
import threading
from typing import Any
import uuid

from loguru import logger

from logkeeper.core.exceptions import FilesystemError
from logkeeper.core.formatting import FormatCallable, FormatterKind, resolve_formatter
from logkeeper.core.locks import ReadWriteLock
from logkeeper.core.validation import ensure_valid
from logkeeper.schemas.settings import Settings
from logkeeper.services.sweeper import sweep
from logkeeper.services.writer import ActiveWriter, Clock

REGISTRY_EXTRA_KEY = "logkeeper_registry"


class LogHandle:
    """Stable view of whatever writer the registry currently has installed.

    Holding a handle across reconfiguration is safe: every call is routed to
    the writer that is current at call time.
    """

    def __init__(self, registry: "LoggerRegistry") -> None:
        self._registry = registry
        self.logger = logger.bind(**{REGISTRY_EXTRA_KEY: registry.token})

    def write(self, data: bytes | str) -> int:
        """Append raw bytes (or UTF-8 text) to the current log file."""
        return self._registry.write(data)

    @property
    def path(self) -> Path:
        return self._registry.current_path()

    @property
    def writer(self) -> ActiveWriter:
        return self._registry.current_writer()

    @property
    def settings(self) -> Settings:
        return self.writer.settings


class LoggerRegistry:
    """Concurrency-safe owner of the single active writer."""

    def __init__(self, default_settings: Settings | None = None, clock: Clock | None = None) -> None:
        self.token = uuid.uuid4().hex
        self.installs = 0
        self._default_settings = default_settings or Settings()
        self._clock = clock
        self._lock = ReadWriteLock()
        self._writer: ActiveWriter | None = None
        self._format: FormatCallable | None = None
        self._level_no = 0
        self._handler_lock = threading.Lock()
        self._handler_id: int | None = None
        self.handle = LogHandle(self)

    def __enter__(self) -> "LoggerRegistry":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- reconfiguration -------------------------------------------------

    def _install_locked(self, settings: Settings | None) -> ActiveWriter:
        validated = ensure_valid(settings)
        formatter = resolve_formatter(validated.formatter, validated.timestamp_format)
        level_no = logger.level(validated.level).no
        writer = ActiveWriter.from_settings(validated, clock=self._clock)

        previous, self._writer = self._writer, None
        if previous is not None:
            try:
                previous.close()
            except FilesystemError as e:
                logger.warning(f"Previous log writer did not close cleanly: {e.message}")

        self._writer, self._format, self._level_no = writer, formatter, level_no
        self.installs += 1
        logger.success(f"Installed log writer at {writer.current_path}")
        return writer

    def _after_install(self, writer: ActiveWriter) -> None:
        self._attach_handler()
        now = self._clock() if self._clock else None
        settings = writer.settings
        sweep(settings.root_path, settings.retention, now=now, live=writer.current_path)

    def install(self, settings: Settings | None) -> LogHandle:
        """Validate ``settings``, build a writer for them and make it current.

        Raises ConfigurationError, PathSecurityError or FilesystemError; in
        every failure case the previously installed writer stays current.
        """
        with self._lock.write():
            writer = self._install_locked(settings)
        self._after_install(writer)
        return self.handle

    def set_formatter(self, formatter: FormatterKind | str | Callable[..., str]) -> LogHandle:
        """Switch the record formatter of the current settings without reopening files."""
        while True:
            self.current()
            with self._lock.write():
                writer = self._writer
                if writer is None:
                    # closed by another thread in between; install again
                    continue
                writer.settings = writer.settings.model_copy(update={"formatter": formatter})
                self._format = resolve_formatter(formatter, writer.settings.timestamp_format)
                return self.handle

    def close(self) -> None:
        """Detach from loguru and release the current writer.

        The next :meth:`current` or :meth:`install` starts a fresh writer.
        """
        self._detach_handler()
        with self._lock.write():
            writer, self._writer = self._writer, None
            self._format = None
            if writer is not None:
                writer.close()
                logger.info(f"Closed log writer at {writer.current_path}")

    # -- access ----------------------------------------------------------

    def current(self) -> LogHandle:
        """Return the handle, lazily installing the default settings exactly once."""
        with self._lock.read():
            if self._writer is not None:
                return self.handle
        installed = None
        with self._lock.write():
            if self._writer is None:
                installed = self._install_locked(self._default_settings)
        if installed is not None:
            self._after_install(installed)
        return self.handle

    def current_writer(self) -> ActiveWriter:
        while True:
            with self._lock.read():
                if self._writer is not None:
                    return self._writer
            self.current()

    def current_path(self) -> Path:
        while True:
            with self._lock.read():
                if self._writer is not None:
                    return self._writer.current_path
            self.current()

    def write(self, data: bytes | str) -> int:
        while True:
            with self._lock.read():
                if self._writer is not None:
                    return self._writer.write(data)
            self.current()

    # -- loguru plumbing -------------------------------------------------

    def _attach_handler(self) -> None:
        with self._handler_lock:
            if self._handler_id is None:
                self._handler_id = logger.add(
                    self._emit,
                    level=0,
                    format=self._format_record,
                    filter=self._accepts,
                    catch=True,
                )

    def _detach_handler(self) -> None:
        # Must not run under the write lock: removal waits for in-flight emits
        with self._handler_lock:
            handler_id, self._handler_id = self._handler_id, None
        if handler_id is not None:
            logger.remove(handler_id)

    def _accepts(self, record: dict[str, Any]) -> bool:
        return (
            record["extra"].get(REGISTRY_EXTRA_KEY) == self.token
            and record["level"].no >= self._level_no
        )

    def _format_record(self, record: dict[str, Any]) -> str:
        formatter = self._format
        return formatter(record) if formatter is not None else "{message}\n"

    def _emit(self, message: str) -> None:
        with self._lock.read():
            if self._writer is not None:
                self._writer.write(str(message))
