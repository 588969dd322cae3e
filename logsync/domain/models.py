"""
Domain models for logsync.

Field values are a closed tagged union produced once when a Loki payload is
parsed. Formatting a stored cell and hashing a record both go through
`FieldValue.text()`, so the two can never disagree about how a value looks.
"""
from __future__ import annotations

import json
import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from logsync.utils.logging import get_logger

log = get_logger(__name__)

STRINGIFY_ERROR = "[stringify error]"
GROUP_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")

_VALUE_CONFIG = ConfigDict(frozen=True, strict=True)


def canonical_json(value: Any) -> str:
    """JSON with sorted keys and compact separators, stable across runs."""
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


class StringValue(BaseModel):
    kind: Literal["string"] = "string"
    value: str

    model_config = _VALUE_CONFIG

    def text(self) -> str:
        return self.value


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    value: Union[int, float]

    model_config = _VALUE_CONFIG

    def text(self) -> str:
        return json.dumps(self.value)


class BoolValue(BaseModel):
    kind: Literal["bool"] = "bool"
    value: bool

    model_config = _VALUE_CONFIG

    def text(self) -> str:
        return "true" if self.value else "false"


class StructuredValue(BaseModel):
    """Nested object or array, stored as canonical JSON text."""

    kind: Literal["structured"] = "structured"
    value: Any

    model_config = ConfigDict(frozen=True)

    def text(self) -> str:
        try:
            return canonical_json(self.value)
        except (TypeError, ValueError) as exc:
            log.warning(f"Could not serialize structured value: {exc}")
            return STRINGIFY_ERROR


class Missing(BaseModel):
    kind: Literal["missing"] = "missing"

    model_config = _VALUE_CONFIG

    def text(self) -> str:
        return ""


FieldValue = Annotated[
    Union[StringValue, NumberValue, BoolValue, StructuredValue, Missing],
    Field(discriminator="kind"),
]

MISSING = Missing()


def is_valid_group_name(name: object) -> bool:
    """Group names double as table and file names: `[A-Za-z0-9_-]+` only."""
    return isinstance(name, str) and GROUP_NAME_RE.match(name) is not None


def utf8_safe(raw: Any) -> Any:
    """
    Replace lone surrogates (JSON `"\\udXXX"` escapes) with their backslash form.

    Such strings decode fine but cannot be written as UTF-8; cleaning them once
    here keeps the stored cell and the hashed text identical.
    """
    if isinstance(raw, str):
        return raw.encode("utf-8", "backslashreplace").decode("utf-8")
    if isinstance(raw, dict):
        return {utf8_safe(str(k)): utf8_safe(v) for k, v in raw.items()}
    if isinstance(raw, list):
        return [utf8_safe(v) for v in raw]
    return raw


def field_value(raw: Any) -> FieldValue:
    """Classify a decoded JSON value into its FieldValue variant."""
    if raw is None:
        return MISSING
    # bool first: bool is a subclass of int
    if isinstance(raw, bool):
        return BoolValue(value=raw)
    if isinstance(raw, (int, float)):
        return NumberValue(value=raw)
    if isinstance(raw, str):
        return StringValue(value=utf8_safe(raw))
    if isinstance(raw, (dict, list)):
        return StructuredValue(value=utf8_safe(raw))
    return StringValue(value=utf8_safe(str(raw)))


class LogRecord(BaseModel):
    """
    One log entry fetched from Loki.

    The reserved timestamp column is held as integer UTC nanoseconds in
    `timestamp_ns`; `payload` holds every other field of the parsed line.
    """

    timestamp_ns: int
    payload: Dict[str, FieldValue] = Field(default_factory=dict)
    timestamp_column: str = "_timestamp"

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_payload(
        cls, payload: Dict[str, Any], timestamp_ns: int, timestamp_column: str = "_timestamp"
    ) -> "LogRecord":
        values = {
            utf8_safe(str(name)): field_value(raw)
            for name, raw in payload.items()
            if name != timestamp_column
        }
        return cls(timestamp_ns=timestamp_ns, payload=values, timestamp_column=timestamp_column)

    def value(self, column: str) -> FieldValue:
        if column == self.timestamp_column:
            return NumberValue(value=self.timestamp_ns)
        return self.payload.get(column, MISSING)

    def field_names(self) -> List[str]:
        return [self.timestamp_column, *self.payload.keys()]

    def group_key(self, field: str) -> Optional[str]:
        """Grouping key as text; numbers use their JSON text. None for other kinds."""
        value = self.payload.get(field)
        if isinstance(value, (StringValue, NumberValue)):
            return value.text()
        return None


class TimeRange(BaseModel):
    """Query window in Unix seconds. Only the start bounds the Loki query."""

    start_seconds: int
    end_seconds: int

    model_config = ConfigDict(frozen=True)

    @property
    def start_ns(self) -> int:
        return self.start_seconds * 1_000_000_000


class ReconcileCase(str, Enum):
    """How the incoming batch relates to a group's stored tail."""

    DISJOINT_AHEAD = "A"
    BOUNDARY_EQUAL = "B"
    OVERLAP = "C"


class GroupResult(BaseModel):
    """Outcome of syncing one destination group."""

    group: str
    fetched: int = 0
    appended: int = 0
    duplicates: int = 0
    excluded_rows: int = 0
    case: Optional[ReconcileCase] = None
    new_columns: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SyncReport(BaseModel):
    """Summary of one sync run."""

    window: Optional[TimeRange] = None
    last_processed_ns: Optional[int] = None
    fetched: int = 0
    parsed: int = 0
    routed: int = 0
    skipped_groups: List[str] = Field(default_factory=list)
    groups: List[GroupResult] = Field(default_factory=list)
    dry_run: bool = False
    duration_seconds: float = 0.0
    peak_rss_bytes: Optional[int] = None

    @property
    def appended(self) -> int:
        return sum(g.appended for g in self.groups)

    @property
    def failed_groups(self) -> List[str]:
        return [g.group for g in self.groups if not g.ok]


__all__ = [
    "BoolValue",
    "FieldValue",
    "GroupResult",
    "LogRecord",
    "MISSING",
    "Missing",
    "NumberValue",
    "ReconcileCase",
    "STRINGIFY_ERROR",
    "StringValue",
    "StructuredValue",
    "SyncReport",
    "TimeRange",
    "canonical_json",
    "field_value",
    "utf8_safe",
    "is_valid_group_name",
]
