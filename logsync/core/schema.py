"""
Column set merging for destination groups.

A group's header only ever grows: existing columns keep their position so
rows written earlier keep their meaning, and new field names are appended.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from logsync.utils.logging import get_logger

log = get_logger(__name__)


def merge_columns(
    existing: Sequence[str],
    incoming_field_sets: Iterable[Iterable[str]],
    timestamp_column: str,
) -> List[str]:
    """
    Widen `existing` with every field name seen in `incoming_field_sets`.

    A header built from scratch is the timestamp column followed by the other
    names sorted alphabetically. An existing header is kept verbatim with new
    names appended in sorted order, so the result never depends on the order
    in which records arrived.
    """
    seen = set(existing)
    new_names = set()
    for field_names in incoming_field_sets:
        for name in field_names:
            if name not in seen:
                new_names.add(name)

    if not existing:
        new_names.discard(timestamp_column)
        return [timestamp_column, *sorted(new_names)]

    if timestamp_column not in seen:
        new_names.add(timestamp_column)
    return [*existing, *sorted(new_names)]


class SchemaMerger:
    """
    Tracks one group's ordered column set while a batch is reconciled.
    """

    def __init__(self, group: str, existing: Sequence[str], timestamp_column: str) -> None:
        self.group = group
        self.existing = list(existing)
        self.timestamp_column = timestamp_column
        self.columns = list(existing)
        if self.existing and timestamp_column not in self.existing:
            log.warning(
                f"Group '{group}' header has no '{timestamp_column}' column; it will be appended",
                extra={"group": group},
            )

    def widen(self, incoming_field_sets: Iterable[Iterable[str]]) -> List[str]:
        self.columns = merge_columns(self.columns, incoming_field_sets, self.timestamp_column)
        return self.columns

    def preview(self, incoming_field_sets: Iterable[Iterable[str]]) -> List[str]:
        """Columns `widen` would produce, without recording them."""
        return merge_columns(self.columns, incoming_field_sets, self.timestamp_column)

    @property
    def added(self) -> List[str]:
        return self.columns[len(self.existing):]

    @property
    def changed(self) -> bool:
        return self.columns != self.existing


__all__ = ["SchemaMerger", "merge_columns"]
