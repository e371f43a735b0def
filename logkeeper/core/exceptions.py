"""Exception classes shared by the validator, the writers and the registry."""

from dataclasses import dataclass, field
from typing import TypeAlias

# Shared type alias for error detail values
ErrorDetails: TypeAlias = dict[str, str | int | float | bool | list[str] | None]


@dataclass
class LogKeeperError(Exception):
    """Base exception for all log lifecycle errors."""

    code: str = "logkeeper_error"
    message: str = "A log lifecycle error occurred"
    details: ErrorDetails = field(default_factory=dict)

    def __str__(self) -> str:  # pyright: ignore[reportImplicitOverride]
        return self.message


@dataclass
class ConfigurationError(LogKeeperError):
    """Raised when settings are inconsistent or out of range."""

    code: str = "configuration_error"
    message: str = "Invalid logger settings"


@dataclass
class PathSecurityError(ConfigurationError):
    """Raised when a log root traverses upward or targets a protected directory."""

    code: str = "path_security_error"
    message: str = "Unsafe log path"


@dataclass
class FilesystemError(LogKeeperError):
    """Raised when a directory or file cannot be created, renamed or written."""

    code: str = "filesystem_error"
    message: str = "Filesystem operation failed"
