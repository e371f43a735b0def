"""Settings value object consumed by the validator and the registry."""

from collections.abc import Callable, Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from logkeeper.core.exceptions import ConfigurationError
from logkeeper.core.formatting import FormatterKind
from logkeeper.core.validation import has_traversal, is_absolute_root

DEFAULT_NAME = "logger"
DEFAULT_LEVEL = "INFO"
DEFAULT_ROTATION_INTERVAL = timedelta(hours=24)
DEFAULT_RETENTION_DAYS = 7
DEFAULT_TIMESTAMP_FORMAT = "YYYY-MM-DD HH:mm:ss.SSS"

# Level spellings accepted from configuration files
LEVEL_ALIASES: dict[str, str] = {
    "trace": "TRACE",
    "debug": "DEBUG",
    "info": "INFO",
    "success": "SUCCESS",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
    "fatal": "CRITICAL",
    "panic": "CRITICAL",
    "critical": "CRITICAL",
}

# Keys of the file-based configuration surface mapped onto field names
_MAPPING_ALIASES: dict[str, str] = {
    "log_root": "root",
    "log_name_base": "name",
    "days_to_keep": "retention_days",
    "max_size_mb": "size_threshold_mb",
    "use_hierarchical_path": "hierarchical",
    "formatter_type": "formatter",
    "rotation_time": "rotation_interval",
}


def parse_level(value: str) -> str:
    """Map a configured level name onto a loguru level, defaulting to INFO."""
    return LEVEL_ALIASES.get(value.strip().lower(), DEFAULT_LEVEL)


class Settings(BaseModel):
    """Immutable description of where and how log files are written."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    root: str = ""
    name: str = DEFAULT_NAME
    level: str = DEFAULT_LEVEL
    rotation_interval: timedelta = DEFAULT_ROTATION_INTERVAL
    size_threshold_mb: int = 0
    retention_days: int = DEFAULT_RETENTION_DAYS
    max_age: timedelta | None = None
    max_backups: int = 0
    hierarchical: bool = False
    formatter: FormatterKind | str | Callable[..., str] = FormatterKind.WITH_FIELD
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT

    @property
    def size_based(self) -> bool:
        """Size rotation wins whenever a threshold is configured."""
        return self.size_threshold_mb > 0

    @property
    def size_threshold_bytes(self) -> int:
        return self.size_threshold_mb * 1024 * 1024

    @property
    def retention(self) -> timedelta:
        """Effective retention; ``retention_days`` takes precedence over ``max_age``."""
        if self.retention_days > 0:
            return timedelta(days=self.retention_days)
        if self.max_age is not None and self.max_age > timedelta(0):
            return self.max_age
        return timedelta(0)

    @property
    def root_path(self) -> Path:
        return Path(self.root) if self.root else Path.cwd()

    def with_defaults(self) -> "Settings":
        """Fill empty-but-legal fields with their defaults."""
        update: dict[str, Any] = {"level": self.level.strip().upper() or DEFAULT_LEVEL}
        if not self.root:
            update["root"] = str(Path.cwd())
        if not self.name:
            update["name"] = DEFAULT_NAME
        if self.rotation_interval == timedelta(0):
            update["rotation_interval"] = DEFAULT_ROTATION_INTERVAL
        if self.retention == timedelta(0):
            update["retention_days"] = DEFAULT_RETENTION_DAYS
        return self.model_copy(update=update)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Settings":
        """Build settings from an already-deserialized configuration mapping.

        Accepts both field names and the snake_case keys of the configuration
        file surface (``log_root``, ``days_to_keep``, ...). Relative roots are
        anchored at the working directory; roots with ``..`` segments are left
        untouched so validation rejects them.
        """
        values: dict[str, Any] = {}
        for key, value in data.items():
            values[_MAPPING_ALIASES.get(key, key)] = value

        if isinstance(values.get("level"), str):
            values["level"] = parse_level(values["level"])

        formatter = values.get("formatter")
        if isinstance(formatter, str):
            try:
                values["formatter"] = FormatterKind(formatter)
            except ValueError:
                values["formatter"] = FormatterKind.WITH_FIELD

        root = values.get("root")
        if isinstance(root, str) and root and not is_absolute_root(root) and not has_traversal(root):
            values["root"] = str(Path.cwd() / root)

        try:
            return cls.model_validate(values)
        except PydanticValidationError as e:
            raise ConfigurationError(
                message=f"Invalid logger settings: {e.error_count()} field error(s)",
                details={"errors": [str(err["loc"]) for err in e.errors()]},
            ) from e
