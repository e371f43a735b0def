"""Expiration sweeper for aged log files and day directories.

Two independent passes run on every sweep:

* hierarchical: ``root/YYYY/MM/DD`` directories older than the retention are
  removed whole, then any month/year directory left empty is pruned;
* flat: files in ``root`` named ``{name}--{YYYYMMDDHHMM}--.log`` older than the
  retention are unlinked.

The file a writer currently appends to, and the directories holding it, are
never removed, however old their names say they are.

Cleanup is best-effort. Entries that cannot be parsed or removed are recorded
as skipped and never abort the sweep.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
import shutil

from loguru import logger

from logkeeper.core.layout import day_directories, parse_flat_timestamp


@dataclass
class SweepReport:
    """What a sweep removed and what it had to leave alone."""

    removed_dirs: list[Path] = field(default_factory=list)
    removed_files: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return len(self.removed_dirs) + len(self.removed_files)


def _is_empty(directory: Path) -> bool:
    try:
        return next(directory.iterdir(), None) is None
    except OSError:
        return False


def _prune_empty_parents(directory: Path, root: Path, report: SweepReport) -> None:
    parent = directory.parent
    while parent != root and root in parent.parents and _is_empty(parent):
        try:
            parent.rmdir()
        except OSError as e:
            logger.debug(f"Could not prune empty log directory {parent}: {e!s}")
            report.skipped.append(parent)
            return
        report.removed_dirs.append(parent)
        parent = parent.parent


def _is_live(entry: Path, live: Path | None) -> bool:
    return live is not None and (entry == live or entry in live.parents)


def _sweep_hierarchical(
    root: Path, max_age: timedelta, now: datetime, live: Path | None, report: SweepReport
) -> None:
    for day_dir, day in day_directories(root):
        if day is None:
            report.skipped.append(day_dir)
            continue
        if now - day <= max_age or _is_live(day_dir, live):
            continue
        try:
            shutil.rmtree(day_dir)
        except OSError as e:
            logger.warning(f"Could not remove expired log directory {day_dir}: {e!s}")
            report.skipped.append(day_dir)
            continue
        report.removed_dirs.append(day_dir)
        _prune_empty_parents(day_dir, root, report)


def _sweep_flat(
    root: Path, max_age: timedelta, now: datetime, live: Path | None, report: SweepReport
) -> None:
    try:
        entries = list(root.iterdir())
    except OSError as e:
        logger.warning(f"Could not list log root {root}: {e!s}")
        return
    for entry in entries:
        stamp = parse_flat_timestamp(entry.name)
        if stamp is None or not entry.is_file():
            continue
        if now - stamp <= max_age or _is_live(entry, live):
            continue
        try:
            entry.unlink()
        except OSError as e:
            logger.warning(f"Could not remove expired log file {entry}: {e!s}")
            report.skipped.append(entry)
            continue
        report.removed_files.append(entry)


def sweep(
    root: Path | str,
    retention: int | timedelta,
    now: datetime | None = None,
    live: Path | str | None = None,
) -> SweepReport:
    """Delete log files and day directories under ``root`` older than ``retention``.

    ``retention`` is a day count or a duration; zero or less keeps everything.
    ``live`` names the file currently being written; it survives the sweep.
    """
    report = SweepReport()
    max_age = timedelta(days=retention) if isinstance(retention, int) else retention
    if max_age <= timedelta(0):
        return report

    root = Path(root)
    if not root.is_dir():
        return report
    now = now or datetime.now()
    live_path = Path(live) if live is not None else None

    _sweep_hierarchical(root, max_age, now, live_path, report)
    _sweep_flat(root, max_age, now, live_path, report)

    if report.removed:
        logger.info(
            f"Swept {len(report.removed_dirs)} directories and "
            f"{len(report.removed_files)} files from {root}"
        )
    return report
