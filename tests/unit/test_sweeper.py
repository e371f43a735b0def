"""Unit tests for the expiration sweeper."""

from datetime import datetime, timedelta
from pathlib import Path
import shutil
from unittest.mock import patch

from logkeeper.core import layout
from logkeeper.services.sweeper import sweep

NOW = datetime(2024, 3, 5, 12, 0)


def _day_dir(root: Path, days_ago: int, now: datetime = NOW) -> Path:
    directory = layout.day_directory(root, now - timedelta(days=days_ago))
    directory.mkdir(parents=True)
    (directory / "svc--0000--.log").write_text("entry\n")
    return directory


def _flat_file(root: Path, days_ago: int) -> Path:
    root.mkdir(exist_ok=True)
    stamp = NOW - timedelta(days=days_ago)
    path = root / f"svc--{stamp:%Y%m%d%H%M}--.log"
    path.write_text("entry\n")
    return path


class TestHierarchicalSweep:
    """Tests for the year/month/day pass."""

    def test_expired_day_and_empty_parents_removed(self, log_root: Path):
        """Test that an old day directory goes, along with its emptied month."""
        expired = _day_dir(log_root, 8)  # 2024/02/26
        kept = _day_dir(log_root, 6)  # 2024/02/28

        report = sweep(log_root, 7, now=NOW)

        assert not expired.exists()
        assert kept.exists()
        assert expired in report.removed_dirs
        # February still holds the kept day
        assert expired.parent.exists()

    def test_empty_month_and_year_pruned(self, log_root: Path):
        """Test that month and year directories left empty are deleted."""
        now = datetime(2024, 1, 3, 9, 0)
        expired = _day_dir(log_root, 8, now=now)  # 2023/12/26
        current = _day_dir(log_root, 0, now=now)

        report = sweep(log_root, 7, now=now)

        assert not (log_root / "2023").exists()
        assert log_root.exists()
        assert current.exists()
        assert expired.parent in report.removed_dirs
        assert expired.parent.parent in report.removed_dirs

    def test_day_inside_retention_preserved(self, log_root: Path):
        """Test that retention_days - 1 days old is kept."""
        kept = _day_dir(log_root, 6)
        report = sweep(log_root, 7, now=NOW)
        assert kept.exists()
        assert report.removed == 0

    def test_invalid_dates_skipped(self, log_root: Path):
        """Test that numeric but impossible dates are skipped, not fatal."""
        bogus = log_root / "2023" / "13" / "45"
        bogus.mkdir(parents=True)
        expired = _day_dir(log_root, 30)

        report = sweep(log_root, 7, now=NOW)

        assert bogus.exists()
        assert bogus in report.skipped
        assert not expired.exists()

    def test_non_numeric_directories_ignored(self, log_root: Path):
        """Test that unrelated directories are left alone."""
        other = log_root / "archive" / "old" / "stuff"
        other.mkdir(parents=True)
        sweep(log_root, 1, now=NOW)
        assert other.exists()

    def test_removal_failure_is_swallowed(self, log_root: Path):
        """Test that one undeletable day does not stop the rest of the sweep."""
        first = _day_dir(log_root, 20)
        second = _day_dir(log_root, 10)
        real_rmtree = shutil.rmtree

        def flaky(path, *args, **kwargs):
            if Path(path) == first:
                raise PermissionError("denied")
            return real_rmtree(path, *args, **kwargs)

        with patch("logkeeper.services.sweeper.shutil.rmtree", side_effect=flaky):
            report = sweep(log_root, 7, now=NOW)

        assert first.exists()
        assert first in report.skipped
        assert not second.exists()


class TestFlatSweep:
    """Tests for the flat timestamped-file pass."""

    def test_expired_files_removed(self, log_root: Path):
        """Test that old stamped files go and recent ones stay."""
        expired = _flat_file(log_root, 8)
        kept = _flat_file(log_root, 6)
        unrelated = log_root / "notes.txt"
        unrelated.write_text("keep me")
        live = log_root / "svc.log"
        live.write_text("live")

        report = sweep(log_root, 7, now=NOW)

        assert not expired.exists()
        assert kept.exists()
        assert unrelated.exists()
        assert live.exists()
        assert report.removed_files == [expired]

    def test_unparsable_stamp_skipped(self, log_root: Path):
        """Test that an impossible embedded timestamp is ignored."""
        log_root.mkdir()
        odd = log_root / "svc--202413991200--.log"
        odd.write_text("x")
        sweep(log_root, 7, now=NOW)
        assert odd.exists()

    def test_duration_retention(self, log_root: Path):
        """Test that retention may be given as a duration."""
        recent = _flat_file(log_root, 1)
        report = sweep(log_root, timedelta(hours=12), now=NOW)
        assert not recent.exists()
        assert report.removed == 1


class TestSweepPolicy:
    """Tests for sweep-wide behaviour."""

    def test_non_positive_retention_keeps_everything(self, log_root: Path):
        """Test that zero or negative retention is a no-op."""
        old = _flat_file(log_root, 400)
        assert sweep(log_root, 0, now=NOW).removed == 0
        assert sweep(log_root, -3, now=NOW).removed == 0
        assert old.exists()

    def test_missing_root_is_not_an_error(self, log_root: Path):
        """Test that sweeping a root that does not exist does nothing."""
        assert sweep(log_root, 7, now=NOW).removed == 0

    def test_sweep_is_idempotent(self, log_root: Path):
        """Test that a second sweep with no new files deletes nothing."""
        _day_dir(log_root, 9)
        _flat_file(log_root, 9)

        first = sweep(log_root, 7, now=NOW)
        second = sweep(log_root, 7, now=NOW)

        assert first.removed > 0
        assert second.removed == 0
        assert second.skipped == []


class TestLiveFileSurvives:
    """Tests for the file a writer currently appends to."""

    def test_live_flat_file_kept(self, log_root: Path):
        """Test that the live file is kept even when its stamp is past the retention."""
        live = _flat_file(log_root, 9)
        stale = _flat_file(log_root, 10)

        report = sweep(log_root, 7, now=NOW, live=live)

        assert live.exists()
        assert not stale.exists()
        assert report.removed_files == [stale]

    def test_live_day_directory_kept(self, log_root: Path):
        """Test that the day directory holding the live file is not removed."""
        live_dir = _day_dir(log_root, 1)
        live = live_dir / "svc--0000--.log"

        report = sweep(log_root, timedelta(hours=1), now=NOW, live=live)

        assert live.exists()
        assert report.removed == 0
