"""Rotation strategies deciding when the live log file is replaced."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger

from logkeeper.core import layout
from logkeeper.schemas.settings import Settings

_EPOCH = datetime(1970, 1, 1)


def _remove(path: Path, what: str) -> None:
    try:
        path.unlink()
        logger.debug(f"Removed {what} {path}")
    except OSError as e:
        logger.warning(f"Could not remove {what} {path}: {e!s}")


class RotationStrategy(ABC):
    """Decides the live file path for a moment and when to move to a new one."""

    def __init__(self, root: Path, base_name: str, hierarchical: bool) -> None:
        self.root = root
        self.base_name = base_name
        self.hierarchical = hierarchical

    @abstractmethod
    def path_for(self, now: datetime) -> Path:
        """Return the file records written at ``now`` belong in."""

    @abstractmethod
    def needs_rotation(self, current: Path, written: int, incoming: int, now: datetime) -> bool:
        """Return True if ``incoming`` bytes must not be appended to ``current``."""

    def capacity(self, written: int) -> int | None:
        """Bytes the live file still takes before it must rotate; None if unbounded."""
        return None

    def roll_over(self, current: Path, now: datetime) -> Path:
        """Move the closed file out of the way; return where it now lives."""
        return current

    def prune(self, current: Path, now: datetime) -> None:
        """Discard generations this strategy owns beyond its limits, never ``current``."""


class TimeBasedRotation(RotationStrategy):
    """Opens a new timestamped file whenever the wall clock crosses a period boundary.

    With a positive ``max_age`` every rotation also removes this base name's
    files whose period ended more than ``max_age`` ago.
    """

    def __init__(
        self,
        root: Path,
        base_name: str,
        hierarchical: bool,
        interval: timedelta,
        max_age: timedelta = timedelta(0),
    ) -> None:
        super().__init__(root, base_name, hierarchical)
        self.interval = interval
        self.max_age = max_age

    def period_start(self, now: datetime) -> datetime:
        """Floor ``now`` to the interval, aligned on local wall-clock time."""
        naive = now.replace(tzinfo=None)
        elapsed = (naive - _EPOCH) // self.interval
        return _EPOCH + elapsed * self.interval

    def path_for(self, now: datetime) -> Path:
        start = self.period_start(now)
        return layout.resolve(self.root, self.base_name, self.hierarchical, start).path(start)

    def needs_rotation(self, current: Path, written: int, incoming: int, now: datetime) -> bool:
        return self.path_for(now) != current

    def generations(self) -> list[tuple[datetime, Path]]:
        """Files of this base name under the root with the period start they encode."""
        found: list[tuple[datetime, Path]] = []
        if self.hierarchical:
            for day_dir, day in layout.day_directories(self.root):
                if day is None:
                    continue
                try:
                    entries = list(day_dir.iterdir())
                except OSError:
                    continue
                for entry in entries:
                    stamp = layout.parse_day_timestamp(self.base_name, entry.name, day)
                    if stamp is not None and entry.is_file():
                        found.append((stamp, entry))
            return found
        try:
            entries = list(self.root.iterdir())
        except OSError:
            return found
        for entry in entries:
            stamp = layout.parse_flat_timestamp(entry.name, self.base_name)
            if stamp is not None and entry.is_file():
                found.append((stamp, entry))
        return found

    def prune(self, current: Path, now: datetime) -> None:
        if self.max_age <= timedelta(0):
            return
        for stamp, path in self.generations():
            if path == current or now - (stamp + self.interval) <= self.max_age:
                continue
            _remove(path, "expired log file")
            if self.hierarchical:
                self._remove_empty_dirs(path.parent, current)

    def _remove_empty_dirs(self, directory: Path, current: Path) -> None:
        while directory != self.root and directory not in current.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent


class SizeBasedRotation(RotationStrategy):
    """Keeps a stable file name and rolls it aside once it would exceed a byte threshold."""

    def __init__(
        self,
        root: Path,
        base_name: str,
        hierarchical: bool,
        threshold: int,
        max_age: timedelta = timedelta(0),
        max_backups: int = 0,
    ) -> None:
        super().__init__(root, base_name, hierarchical)
        self.threshold = threshold
        self.max_age = max_age
        self.max_backups = max_backups

    def path_for(self, now: datetime) -> Path:
        return layout.resolve(
            self.root, self.base_name, self.hierarchical, now, size_based=True
        ).path(now)

    def needs_rotation(self, current: Path, written: int, incoming: int, now: datetime) -> bool:
        if self.path_for(now) != current:
            return True
        return written > 0 and written + incoming > self.threshold

    def capacity(self, written: int) -> int | None:
        return max(self.threshold - written, 0)

    def roll_over(self, current: Path, now: datetime) -> Path:
        # A new day directory needs no rename; the old file simply stays behind
        if self.path_for(now) != current or not current.exists():
            return current
        seq = 0
        target = current.with_name(layout.backup_name(self.base_name, now))
        while target.exists():
            seq += 1
            target = current.with_name(layout.backup_name(self.base_name, now, seq))
        current.rename(target)
        return target

    def backups(self, directory: Path) -> list[tuple[datetime, Path]]:
        """Rolled generations in ``directory``, newest first."""
        found: list[tuple[datetime, Path]] = []
        try:
            entries = list(directory.iterdir())
        except OSError:
            return found
        for entry in entries:
            stamp = layout.parse_backup_timestamp(self.base_name, entry.name)
            if stamp is not None and entry.is_file():
                found.append((stamp, entry))
        return sorted(found, reverse=True)

    def prune(self, current: Path, now: datetime) -> None:
        for index, (stamp, path) in enumerate(self.backups(current.parent)):
            expired = self.max_age > timedelta(0) and now - stamp > self.max_age
            surplus = 0 < self.max_backups <= index
            if (expired or surplus) and path != current:
                _remove(path, "rolled log generation")


def build_strategy(settings: Settings) -> RotationStrategy:
    """Select the rotation variant for validated settings; size threshold wins."""
    root = settings.root_path
    if settings.size_based:
        return SizeBasedRotation(
            root,
            settings.name,
            settings.hierarchical,
            threshold=settings.size_threshold_bytes,
            max_age=settings.retention,
            max_backups=settings.max_backups,
        )
    return TimeBasedRotation(
        root,
        settings.name,
        settings.hierarchical,
        settings.rotation_interval,
        max_age=settings.retention,
    )
