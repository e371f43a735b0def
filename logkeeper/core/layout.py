"""Where log files live and how their names encode time.

Naming, relative to the log root::

    flat, time-based          {name}--{YYYYMMDDHHMM}--.log
    flat, size-based          {name}.log
    hierarchical, time-based  {YYYY}/{MM}/{DD}/{name}--{HHMM}--.log
    hierarchical, size-based  {YYYY}/{MM}/{DD}/{name}.log

Rolled size-based generations sit beside the live file as
``{name}-{YYYY-MM-DDTHH-MM-SS.mmm}.log``.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
import re

from logkeeper.core.exceptions import FilesystemError

LOG_SUFFIX = ".log"
DIR_MODE = 0o755

FLAT_STAMP_FORMAT = "%Y%m%d%H%M"
DAY_STAMP_FORMAT = "%H%M"
BACKUP_STAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"

# Legacy flat name: base--YYYYMMDDHHMM--.log
FLAT_NAME_RE = re.compile(r"^(?P<base>.+)--(?P<stamp>\d{12})--\.log$")
DAY_NAME_RE = re.compile(r"^(?P<base>.+)--(?P<stamp>\d{4})--\.log$")
_NUMERIC = re.compile(r"\d+", re.ASCII)
_BACKUP_STAMP_RE = r"(?P<stamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}\.\d{3})(?:-(?P<seq>\d+))?"


@dataclass(frozen=True)
class Layout:
    """Target directory plus a strftime pattern for the file name."""

    directory: Path
    pattern: str

    def filename(self, moment: datetime) -> str:
        return moment.strftime(self.pattern)

    def path(self, moment: datetime) -> Path:
        return self.directory / self.filename(moment)


def day_directory(root: Path, moment: datetime) -> Path:
    return root / f"{moment:%Y}" / f"{moment:%m}" / f"{moment:%d}"


def resolve(
    root: Path, base_name: str, hierarchical: bool, now: datetime, size_based: bool = False
) -> Layout:
    """Map root, naming mode and the current time onto a directory and name pattern."""
    escaped = base_name.replace("%", "%%")
    directory = day_directory(root, now) if hierarchical else root
    if size_based:
        return Layout(directory, escaped + LOG_SUFFIX)
    stamp = DAY_STAMP_FORMAT if hierarchical else FLAT_STAMP_FORMAT
    return Layout(directory, f"{escaped}--{stamp}--{LOG_SUFFIX}")


def ensure_directory(directory: Path) -> Path:
    """Create ``directory`` and any missing parents as rwxr-xr-x."""
    missing = [d for d in (directory, *directory.parents) if not d.is_dir()]
    try:
        for level in reversed(missing):
            level.mkdir(mode=DIR_MODE, exist_ok=True)
    except OSError as e:
        raise FilesystemError(
            message=f"Create log dir error: {e}", details={"directory": str(directory)}
        ) from e
    return directory


def parse_flat_timestamp(filename: str, base_name: str | None = None) -> datetime | None:
    """Return the embedded timestamp of a legacy flat file name, if it has one.

    With ``base_name`` only files of that base count.
    """
    match = FLAT_NAME_RE.match(filename)
    if match is None or base_name not in (None, match["base"]):
        return None
    try:
        return datetime.strptime(match["stamp"], FLAT_STAMP_FORMAT)
    except ValueError:
        return None


def backup_name(base_name: str, moment: datetime, seq: int = 0) -> str:
    stamp = f"{moment.strftime(BACKUP_STAMP_FORMAT)}.{moment.microsecond // 1000:03d}"
    suffix = f"-{seq}" if seq else ""
    return f"{base_name}-{stamp}{suffix}{LOG_SUFFIX}"


def parse_backup_timestamp(base_name: str, filename: str) -> datetime | None:
    """Return the roll-over time encoded in a size-based generation name."""
    pattern = rf"^{re.escape(base_name)}-{_BACKUP_STAMP_RE}{re.escape(LOG_SUFFIX)}$"
    match = re.match(pattern, filename)
    if match is None:
        return None
    try:
        return datetime.strptime(match["stamp"], BACKUP_STAMP_FORMAT + ".%f")
    except ValueError:
        return None


def day_directories(root: Path) -> Iterator[tuple[Path, datetime | None]]:
    """Yield every numeric ``YYYY/MM/DD`` directory under ``root`` with its date.

    The date is None when the triple is not a valid calendar day.
    """
    for year_dir in _numeric_children(root):
        for month_dir in _numeric_children(year_dir):
            for day_dir in _numeric_children(month_dir):
                try:
                    day = datetime(int(year_dir.name), int(month_dir.name), int(day_dir.name))
                except ValueError:
                    day = None
                yield day_dir, day


def _numeric_children(directory: Path) -> list[Path]:
    try:
        return sorted(
            child
            for child in directory.iterdir()
            if _NUMERIC.fullmatch(child.name) and child.is_dir()
        )
    except OSError:
        return []


def parse_day_timestamp(base_name: str, filename: str, day: datetime) -> datetime | None:
    """Return the time of a hierarchical ``{name}--{HHMM}--.log`` file inside ``day``."""
    match = DAY_NAME_RE.match(filename)
    if match is None or match["base"] != base_name:
        return None
    try:
        clock = datetime.strptime(match["stamp"], DAY_STAMP_FORMAT)
    except ValueError:
        return None
    return day.replace(hour=clock.hour, minute=clock.minute)
