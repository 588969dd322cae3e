"""
Domain package for logsync.

Exports the records, field value variants and run results shared by the sync
core, the source and the orchestrator.
"""

from logsync.domain.models import (
    MISSING,
    BoolValue,
    FieldValue,
    GroupResult,
    LogRecord,
    Missing,
    NumberValue,
    ReconcileCase,
    StringValue,
    StructuredValue,
    SyncReport,
    TimeRange,
    field_value,
)

__all__ = [
    "MISSING",
    "BoolValue",
    "FieldValue",
    "GroupResult",
    "LogRecord",
    "Missing",
    "NumberValue",
    "ReconcileCase",
    "StringValue",
    "StructuredValue",
    "SyncReport",
    "TimeRange",
    "field_value",
]
