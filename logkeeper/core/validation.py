"""Settings validation.

Every check here is pure: nothing touches the file system, so a rejected
configuration never leaves directories or files behind.
"""

from datetime import timedelta
import os
import re
from typing import TYPE_CHECKING, cast

from loguru import logger

from logkeeper.core.exceptions import ConfigurationError, PathSecurityError

if TYPE_CHECKING:
    from logkeeper.schemas.settings import Settings

MAX_RETENTION_DAYS = 365
MAX_SIZE_THRESHOLD_MB = 1024
MAX_BACKUPS = 1024
MIN_ROTATION_INTERVAL = timedelta(minutes=1)

# Separators plus characters reserved by common filesystems
_RESERVED_NAME_CHARS = re.compile(r'[/\\:*?"<>|\x00-\x1f]')
_DRIVE_PATH = re.compile(r"^[A-Za-z]:[\\/]")

PROTECTED_DIRECTORIES: tuple[str, ...] = (
    "/bin",
    "/boot",
    "/dev",
    "/etc",
    "/lib",
    "/lib64",
    "/proc",
    "/sbin",
    "/sys",
    "/usr",
    "c:/windows",
    "c:/program files",
    "c:/program files (x86)",
    "c:/programdata",
)


def has_traversal(path: str) -> bool:
    """Return True if any ``/`` or ``\\`` delimited segment is exactly ``..``."""
    return ".." in re.split(r"[\\/]", path)


def is_absolute_root(path: str) -> bool:
    """Absolute in either POSIX (``/var/log``) or drive-letter (``C:\\logs``) form."""
    return path.startswith(("/", "\\")) or bool(_DRIVE_PATH.match(path))


def _normalize(path: str) -> str:
    normalized = re.sub(r"[\\/]+", "/", path).rstrip("/") or "/"
    if _DRIVE_PATH.match(path):
        normalized = normalized.lower()
    return normalized


def _under(path: str, directory: str) -> bool:
    return path == directory or path.startswith(directory + "/")


def is_protected(path: str) -> bool:
    """Return True if ``path`` is, or lies under, an OS-owned directory."""
    candidates = {_normalize(path)}
    if os.path.isabs(path):
        candidates.add(_normalize(os.path.realpath(path)))
    return any(_under(c, d) for c in candidates for d in PROTECTED_DIRECTORIES)


def _check_numbers(settings: "Settings") -> ConfigurationError | None:
    if not 0 <= settings.retention_days <= MAX_RETENTION_DAYS:
        return ConfigurationError(
            message=f"retention_days must be between 0 and {MAX_RETENTION_DAYS}",
            details={"retention_days": settings.retention_days},
        )
    if settings.max_age is not None and not (
        timedelta(0) <= settings.max_age <= timedelta(days=MAX_RETENTION_DAYS)
    ):
        return ConfigurationError(
            message=f"max_age must be between 0 and {MAX_RETENTION_DAYS} days",
            details={"max_age_seconds": settings.max_age.total_seconds()},
        )
    if not 0 <= settings.size_threshold_mb <= MAX_SIZE_THRESHOLD_MB:
        return ConfigurationError(
            message=f"size_threshold_mb must be between 0 and {MAX_SIZE_THRESHOLD_MB}",
            details={"size_threshold_mb": settings.size_threshold_mb},
        )
    if not 0 <= settings.max_backups <= MAX_BACKUPS:
        return ConfigurationError(
            message=f"max_backups must be between 0 and {MAX_BACKUPS}",
            details={"max_backups": settings.max_backups},
        )
    interval = settings.rotation_interval
    if interval < timedelta(0) or timedelta(0) < interval < MIN_ROTATION_INTERVAL:
        return ConfigurationError(
            message="rotation_interval must be zero (default) or at least 1 minute",
            details={"rotation_interval_seconds": interval.total_seconds()},
        )
    return None


def _check_name(name: str) -> ConfigurationError | None:
    if _RESERVED_NAME_CHARS.search(name) or (name and not name.strip(".")):
        return ConfigurationError(
            message=f"Log name contains invalid characters: {name!r}",
            details={"name": name},
        )
    return None


def _check_root(root: str) -> ConfigurationError | None:
    if not root:
        return None
    if has_traversal(root):
        return PathSecurityError(
            message=f"Invalid log path, path traversal detected: {root}",
            details={"root": root},
        )
    if not is_absolute_root(root):
        return ConfigurationError(
            message=f"Invalid log path, log path must be absolute: {root}",
            details={"root": root},
        )
    if is_protected(root):
        return PathSecurityError(
            message=f"Invalid log path, cannot use system directory: {root}",
            details={"root": root},
        )
    return None


def _check_level(level: str) -> ConfigurationError | None:
    try:
        logger.level(level.strip().upper())
    except ValueError:
        return ConfigurationError(
            message=f"Unknown log level: {level!r}", details={"level": level}
        )
    return None


def validate(settings: "Settings | None") -> ConfigurationError | None:
    """Check ``settings`` and return the first problem found, or None."""
    if settings is None:
        return ConfigurationError(message="Logger settings are required")
    return (
        _check_numbers(settings)
        or _check_name(settings.name)
        or _check_root(settings.root)
        or _check_level(settings.level)
    )


def ensure_valid(settings: "Settings | None") -> "Settings":
    """Raise the validation error, if any; otherwise return settings with defaults applied."""
    error = validate(settings)
    if error is not None:
        logger.warning(f"Rejected logger settings: {error.message}")
        raise error
    return cast("Settings", settings).with_defaults()
