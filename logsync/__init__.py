"""
logsync - incremental Loki log synchronization into append-only tables.

Each run pulls JSON log lines from Grafana Loki and appends them, without
duplicates, to one table per grouping key (a CSV file or a PostgreSQL table).
The destination's own content is the only state kept between runs:

- the newest stored timestamp decides where the next query starts,
- an overlap margin re-fetches late arrivals,
- content hashes of the overlapping stored rows filter out repeats,
- new fields widen a group's header without touching earlier rows.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from logsync.config import Settings, get_settings
from logsync.core.reconcile import ReconcileResult, Reconciler
from logsync.core.router import GroupRouter
from logsync.core.timestamps import TimestampCodec
from logsync.core.window import plan_window
from logsync.domain.models import GroupResult, LogRecord, SyncReport, TimeRange
from logsync.orchestrator import SyncRunner, run_sync
from logsync.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Orchestration
    "SyncRunner",
    "run_sync",
    # Sync core
    "GroupRouter",
    "ReconcileResult",
    "Reconciler",
    "TimestampCodec",
    "plan_window",
    # Domain
    "GroupResult",
    "LogRecord",
    "SyncReport",
    "TimeRange",
    # Logging
    "configure_logging",
    "get_logger",
]
