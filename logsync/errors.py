"""
Error taxonomy for logsync.

Fatal errors (ConfigError, SourceFetchError) abort a run before anything is
written. The remaining classes are raised per record, per value or per group
and are caught at those boundaries so that one bad item never stops the rest.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LogSyncError(Exception):
    """Base class for all logsync errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(LogSyncError):
    """Required settings are missing or unusable. Raised before any I/O."""


class SourceFetchError(LogSyncError):
    """The log source returned a non-success response or could not be reached."""


class RecordParseError(LogSyncError):
    """A fetched entry could not be turned into a routable record."""


class TimestampError(LogSyncError, ValueError):
    """Base for nanosecond timestamp codec failures."""


class TimestampParseError(TimestampError):
    """An ISO-8601 string (or its offset) could not be decoded."""


class TimestampFormatError(TimestampError):
    """A nanosecond value could not be rendered with the requested offset."""


class GroupProcessingError(LogSyncError):
    """Reconciling or persisting one destination group failed."""

    def __init__(self, group: str, cause: BaseException) -> None:
        super().__init__(
            f"Processing group '{group}' failed: {cause}",
            details={"group": group, "cause": type(cause).__name__},
        )
        self.group = group
        self.__cause__ = cause


__all__ = [
    "LogSyncError",
    "ConfigError",
    "SourceFetchError",
    "RecordParseError",
    "TimestampError",
    "TimestampParseError",
    "TimestampFormatError",
    "GroupProcessingError",
]
