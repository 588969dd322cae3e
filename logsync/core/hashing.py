"""
Content hashing and row formatting.

A record's canonical line is its per-column text joined with `||`, in a given
column order. The same line can be rebuilt from a stored row: every cell is
already canonical text except the timestamp cell, which is decoded back to
nanoseconds. `hash_record(r, c) == hash_stored_row(format_row(r, c), c)` is
what lets a run recognise rows written by an earlier run.
"""

from __future__ import annotations

import hashlib
import uuid
from typing import Any, List, Optional, Sequence

from logsync.core.timestamps import TimestampCodec
from logsync.domain.models import STRINGIFY_ERROR, LogRecord
from logsync.errors import TimestampFormatError, TimestampParseError
from logsync.utils.logging import get_logger

log = get_logger(__name__)

FIELD_DELIMITER = "||"
ERROR_HASH_PREFIX = "error-hash-"


def _digest(parts: Sequence[str]) -> str:
    return hashlib.sha256(FIELD_DELIMITER.join(parts).encode("utf-8")).hexdigest()


def _error_hash() -> str:
    # never equal to a 64-char hex digest, so the record is treated as new
    return f"{ERROR_HASH_PREFIX}{uuid.uuid4().hex}"


def _cell_text(cell: Any) -> str:
    if cell is None:
        return ""
    return cell if isinstance(cell, str) else str(cell)


class ContentHasher:
    """
    Hashes records and stored rows for one destination offset.

    Parameters
    ----------
    codec : TimestampCodec
        Codec used to render and decode the timestamp column.
    timestamp_column : str
        Name of the reserved timestamp column.
    """

    def __init__(self, codec: TimestampCodec, timestamp_column: str) -> None:
        self.codec = codec
        self.timestamp_column = timestamp_column

    def canonical_parts(self, record: LogRecord, columns: Sequence[str]) -> List[str]:
        parts: List[str] = []
        for column in columns:
            try:
                parts.append(record.value(column).text())
            except Exception as exc:  # noqa: BLE001 - one bad field must not abort the hash
                log.warning(f"Could not canonicalize field '{column}': {exc}")
                parts.append(STRINGIFY_ERROR)
        return parts

    def hash_record(self, record: LogRecord, columns: Sequence[str]) -> str:
        try:
            return _digest(self.canonical_parts(record, columns))
        except Exception:  # noqa: BLE001 - degrade to "treat as new"
            log.exception("Hashing record failed; treating it as new")
            return _error_hash()

    def hash_stored_row(self, cells: Sequence[Any], columns: Sequence[str]) -> str:
        """
        Hash a row read back from the destination.

        Cells are matched to `columns` by position; cells missing at the end
        (rows written before the header was widened) count as empty.

        Raises
        ------
        TimestampParseError
            If the timestamp cell cannot be decoded. Callers exclude the row
            from comparison.
        """
        parts: List[str] = []
        try:
            for index, column in enumerate(columns):
                cell = cells[index] if index < len(cells) else None
                if column == self.timestamp_column:
                    parts.append(str(self.codec.decode(cell)) if cell not in (None, "") else "")
                else:
                    parts.append(_cell_text(cell))
            return _digest(parts)
        except TimestampParseError:
            raise
        except Exception:  # noqa: BLE001 - degrade to "treat as new"
            log.exception("Hashing stored row failed; it will not match any record")
            return _error_hash()

    def stored_timestamp(self, cells: Sequence[Any], columns: Sequence[str]) -> Optional[int]:
        """Decoded timestamp cell of a stored row, or None if absent/unparsable."""
        if self.timestamp_column not in columns:
            return None
        index = list(columns).index(self.timestamp_column)
        if index >= len(cells):
            return None
        return self.codec.try_decode(cells[index])

    def format_timestamp(self, timestamp_ns: int) -> str:
        try:
            return self.codec.encode(timestamp_ns)
        except TimestampFormatError as exc:
            log.warning(f"Could not format timestamp {timestamp_ns}: {exc}")
            return f"[timestamp format error: {timestamp_ns}]"

    def format_row(self, record: LogRecord, columns: Sequence[str]) -> List[str]:
        """Stored cell values for `record`, positionally aligned to `columns`."""
        row: List[str] = []
        for column in columns:
            if column == self.timestamp_column:
                row.append(self.format_timestamp(record.timestamp_ns))
            else:
                row.append(record.value(column).text())
        return row


__all__ = ["ContentHasher", "ERROR_HASH_PREFIX", "FIELD_DELIMITER"]
