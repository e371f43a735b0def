"""Lifecycle management for append-only log files: rotation, layout and expiration."""

from loguru import logger

from logkeeper.core.exceptions import (
    ConfigurationError,
    FilesystemError,
    LogKeeperError,
    PathSecurityError,
)
from logkeeper.core.formatting import FormatterKind
from logkeeper.core.layout import Layout, resolve
from logkeeper.core.validation import ensure_valid, validate
from logkeeper.schemas.settings import Settings
from logkeeper.services.registry import LoggerRegistry, LogHandle
from logkeeper.services.rotation import SizeBasedRotation, TimeBasedRotation
from logkeeper.services.sweeper import SweepReport, sweep
from logkeeper.services.writer import ActiveWriter

# Library diagnostics stay silent unless the host calls logger.enable("logkeeper")
logger.disable("logkeeper")

__all__ = [
    "ActiveWriter",
    "ConfigurationError",
    "FilesystemError",
    "FormatterKind",
    "Layout",
    "LogHandle",
    "LogKeeperError",
    "LoggerRegistry",
    "PathSecurityError",
    "Settings",
    "SizeBasedRotation",
    "SweepReport",
    "TimeBasedRotation",
    "ensure_valid",
    "resolve",
    "sweep",
    "validate",
]
