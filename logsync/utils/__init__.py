"""
Utilities package for logsync.

Exports shared helpers for logging and profiling. Keep this package
lightweight and free of sync-domain logic.
"""

from logsync.utils.logging import configure_logging, get_logger
from logsync.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
