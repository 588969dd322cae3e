"""
Reconciliation of a fetched batch against one destination group.

The destination's own rows are the only record of what earlier runs wrote, so
each batch is compared with the stored tail of its group. Three cases are
distinguished by the oldest incoming timestamp (`new_min`) and the newest
stored one (`old_max`):

- A, disjoint-ahead: empty group or `new_min > old_max`. Nothing can be a
  duplicate; append everything.
- B, boundary-equal: `new_min == old_max`. Only the rows sharing the boundary
  timestamp can repeat; read back the trailing slice that covers them.
- C, overlap: `new_min < old_max`. Read back every stored row with a
  timestamp at or after `new_min` and drop incoming records whose content
  hash matches one of them.

Anything that does not fit A or B cleanly is handled as C. The reconciler
never writes; it returns the rows and header the caller should persist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from logsync.config import Settings
from logsync.core.hashing import ContentHasher
from logsync.core.schema import SchemaMerger
from logsync.core.timestamps import TimestampCodec
from logsync.domain.models import LogRecord, ReconcileCase
from logsync.errors import TimestampParseError
from logsync.store.abstract import DestinationStore, Row
from logsync.utils.logging import get_logger

log = get_logger(__name__)

READ_CHUNK_ROWS = 1000


@dataclass
class ReconcileResult:
    """Rows to append to a group and the header they are aligned to."""

    group: str
    case: ReconcileCase
    columns: List[str]
    existing_columns: List[str]
    records: List[LogRecord] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    fetched: int = 0
    duplicates: int = 0
    excluded_rows: int = 0

    @property
    def new_columns(self) -> List[str]:
        return self.columns[len(self.existing_columns):]

    @property
    def header_changed(self) -> bool:
        return self.columns != self.existing_columns


def select_case(
    new_min: Optional[int], old_max: Optional[int], has_rows: bool = False
) -> ReconcileCase:
    """
    Pick the reconciliation case.

    `has_rows` says the group holds rows with a timestamp column. When it is
    set but no tail timestamp could be read, the whole group is compared.
    """
    if old_max is None and has_rows:
        log.warning(
            "Stored rows exist but no tail timestamp is readable; comparing against the whole group"
        )
        return ReconcileCase.OVERLAP
    if old_max is None or (new_min is not None and new_min > old_max):
        return ReconcileCase.DISJOINT_AHEAD
    if new_min is not None and new_min == old_max:
        return ReconcileCase.BOUNDARY_EQUAL
    if new_min is not None and new_min < old_max:
        return ReconcileCase.OVERLAP
    log.warning(
        f"Unexpected timestamp comparison state new_min={new_min} old_max={old_max}; "
        "comparing against the whole group"
    )
    return ReconcileCase.OVERLAP


class Reconciler:
    """
    Decides which fetched records are new for a destination group.

    Parameters
    ----------
    store : DestinationStore
        Destination the group is read from.
    settings : Settings
        Supplies the timestamp column, the destination offset and the size of
        the trailing slice read for boundary comparisons.
    """

    def __init__(
        self,
        store: DestinationStore,
        settings: Settings,
        hasher: Optional[ContentHasher] = None,
    ) -> None:
        self.store = store
        self.timestamp_column = settings.timestamp_column
        self.tail_rows = settings.tail_rows
        self.hasher = hasher or ContentHasher(
            TimestampCodec(settings.timezone_offset), settings.timestamp_column
        )

    def reconcile(self, group: str, records: Sequence[LogRecord]) -> ReconcileResult:
        header = self.store.get_header(group)
        merger = SchemaMerger(group, header, self.timestamp_column)
        row_count = self.store.row_count(group) if header else 0
        ts_index = header.index(self.timestamp_column) if self.timestamp_column in header else None

        tail_start = max(0, row_count - self.tail_rows)
        tail: List[Row] = []
        if row_count and ts_index is not None:
            tail = self.store.read_rows(group, tail_start, row_count - tail_start)
        old_max = self._max_timestamp(tail, header)
        new_min = min((r.timestamp_ns for r in records), default=None)
        case = select_case(new_min, old_max, has_rows=bool(tail))

        result = ReconcileResult(
            group=group,
            case=case,
            columns=list(header),
            existing_columns=list(header),
            fetched=len(records),
        )
        if not records:
            return result

        if case is ReconcileCase.DISJOINT_AHEAD:
            log.info(
                f"[CASE A] '{group}': incoming batch is ahead of stored data "
                f"(new_min={new_min} old_max={old_max}), appending all",
                extra={"group": group, "case": case.value},
            )
            to_append = list(records)
        else:
            hash_columns = merger.preview(r.field_names() for r in records)
            if case is ReconcileCase.BOUNDARY_EQUAL:
                boundary = old_max
                first = self._first_row_at_or_after(group, old_max, row_count, ts_index)
                scan_start = tail_start if first is None else min(tail_start, first)
            else:
                boundary = None
                first = self._first_row_at_or_after(group, new_min, row_count, ts_index)
                # not found: fall back to comparing against the whole group
                scan_start = 0 if first is None else first
            log.info(
                f"[CASE {case.value}] '{group}': comparing against stored rows "
                f"{scan_start}..{row_count - 1} (new_min={new_min} old_max={old_max})",
                extra={"group": group, "case": case.value, "scan_start": scan_start},
            )

            existing, excluded = self._stored_hashes(group, hash_columns, scan_start, row_count)
            result.excluded_rows = excluded
            to_append = []
            for record in records:
                is_candidate = boundary is None or record.timestamp_ns >= boundary
                if is_candidate and self.hasher.hash_record(record, hash_columns) in existing:
                    result.duplicates += 1
                    continue
                to_append.append(record)

        if to_append:
            result.columns = merger.widen(r.field_names() for r in to_append)
        result.records = to_append
        result.rows = [self.hasher.format_row(r, result.columns) for r in to_append]
        log.info(
            f"[RECONCILED] '{group}': {len(to_append)} new, {result.duplicates} duplicate(s)",
            extra={
                "group": group,
                "case": case.value,
                "appended": len(to_append),
                "duplicates": result.duplicates,
                "new_columns": result.new_columns,
            },
        )
        return result

    def _max_timestamp(self, rows: Sequence[Row], header: Sequence[str]) -> Optional[int]:
        decoded = (self.hasher.stored_timestamp(row, header) for row in rows)
        return max((ts for ts in decoded if ts is not None), default=None)

    def _first_row_at_or_after(
        self, group: str, target: int, row_count: int, ts_index: int
    ) -> Optional[int]:
        """
        Binary search for the first row whose timestamp is >= `target`.

        Rows are appended in timestamp order. A probe whose cell cannot be
        decoded moves the search left, so the read-back only grows.
        """
        lo, hi = 0, row_count
        while lo < hi:
            mid = (lo + hi) // 2
            probe = self.store.read_rows(group, mid, 1)
            cell = probe[0][ts_index] if probe and ts_index < len(probe[0]) else None
            ts = self.hasher.codec.try_decode(cell)
            if ts is None or ts >= target:
                hi = mid
            else:
                lo = mid + 1
        return lo if lo < row_count else None

    def _iter_rows(self, group: str, start: int, stop: int) -> Iterator[Row]:
        for offset in range(start, stop, READ_CHUNK_ROWS):
            yield from self.store.read_rows(group, offset, min(READ_CHUNK_ROWS, stop - offset))

    def _stored_hashes(
        self, group: str, columns: Sequence[str], start: int, stop: int
    ) -> Tuple[Set[str], int]:
        hashes: Set[str] = set()
        excluded = 0
        for row in self._iter_rows(group, start, stop):
            try:
                hashes.add(self.hasher.hash_stored_row(row, columns))
            except TimestampParseError as exc:
                excluded += 1
                log.warning(
                    f"Excluding stored row of '{group}' from comparison: {exc}",
                    extra={"group": group},
                )
        log.debug(
            f"Hashed {len(hashes)} stored row(s) of '{group}'",
            extra={"group": group, "rows": stop - start, "excluded": excluded},
        )
        return hashes, excluded


__all__ = ["READ_CHUNK_ROWS", "ReconcileResult", "Reconciler", "select_case"]
