"""
Incremental synchronization core.

Timestamp codec, content hashing, window planning, schema widening,
reconciliation and group routing. Nothing in this package performs I/O other
than reads through the destination store it is handed.
"""

from logsync.core.hashing import ContentHasher
from logsync.core.reconcile import ReconcileResult, Reconciler, select_case
from logsync.core.router import GroupRouter
from logsync.core.schema import SchemaMerger, merge_columns
from logsync.core.timestamps import TimestampCodec, decode, encode
from logsync.core.window import last_processed_seconds, plan_window

__all__ = [
    "ContentHasher",
    "GroupRouter",
    "ReconcileResult",
    "Reconciler",
    "SchemaMerger",
    "TimestampCodec",
    "decode",
    "encode",
    "last_processed_seconds",
    "merge_columns",
    "plan_window",
    "select_case",
]
