"""Pytest configuration and shared fixtures."""

from collections.abc import Callable, Generator
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from logkeeper.schemas.settings import Settings
from logkeeper.services.registry import LoggerRegistry


class FakeClock:
    """Manually advanced stand-in for ``datetime.now``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def log_root(tmp_path: Path) -> Path:
    """An absolute, not yet existing log root inside the test's tmp dir."""
    return tmp_path / "logs"


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at 2024-05-10 12:00:30 local time."""
    return FakeClock(datetime(2024, 5, 10, 12, 0, 30))


@pytest.fixture
def settings(log_root: Path) -> Settings:
    """Time-based settings rooted in the tmp log root."""
    return Settings(root=str(log_root), name="svc")


@pytest.fixture
def registry(log_root: Path, clock: FakeClock) -> Generator[LoggerRegistry, None, None]:
    """A registry whose lazy default writes under the tmp log root."""
    reg = LoggerRegistry(default_settings=Settings(root=str(log_root)), clock=clock)
    yield reg
    reg.close()


@pytest.fixture
def log_files() -> Callable[[Path], list[Path]]:
    """Lists all ``*.log`` files below a root, sorted."""

    def collect(root: Path) -> list[Path]:
        return sorted(p for p in root.rglob("*.log") if p.is_file())

    return collect
