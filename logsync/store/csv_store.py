"""
CSV directory destination.

Each group is one `<group>.csv` file in the destination directory: the first
CSV row is the header, every following row a data row. An append encodes the
whole batch before a single write, so it lands completely or not at all;
widening the header rewrites the file through a temporary
file and `os.replace`, leaving earlier rows untouched (and shorter than the
new header).
"""

from __future__ import annotations

import csv
import io
import itertools
import os
from pathlib import Path
from typing import Iterator, List, Sequence

from logsync.domain.models import is_valid_group_name
from logsync.store.abstract import AbstractDestinationStore, Row
from logsync.utils.logging import get_logger

log = get_logger(__name__)

SUFFIX = ".csv"


class CsvDirectoryStore(AbstractDestinationStore):
    """
    Destination backed by a directory of CSV files, one per group.
    """

    name: str = "csv"

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, group: str) -> Path:
        if not is_valid_group_name(group):
            raise ValueError(f"Invalid group name {group!r}")
        return self.directory / f"{group}{SUFFIX}"

    def _iter_file(self, group: str) -> Iterator[List[str]]:
        path = self._path(group)
        if not path.exists():
            return
        with path.open("r", newline="", encoding="utf-8") as f:
            yield from csv.reader(f)

    def list_groups(self) -> List[str]:
        return sorted(
            p.stem for p in self.directory.glob(f"*{SUFFIX}") if is_valid_group_name(p.stem)
        )

    def get_header(self, group: str) -> List[str]:
        return next(self._iter_file(group), [])

    def row_count(self, group: str) -> int:
        return max(0, sum(1 for _ in self._iter_file(group)) - 1)

    def read_rows(self, group: str, start: int, count: int) -> List[Row]:
        if count <= 0 or start < 0:
            return []
        rows = itertools.islice(self._iter_file(group), start + 1, start + 1 + count)
        return [list(row) for row in rows]

    def write_header(self, group: str, columns: Sequence[str]) -> None:
        path = self._path(group)
        current = self.get_header(group)
        added = self._check_widening(group, current, columns)
        if current and not added:
            return

        tmp_path = path.with_name(path.name + ".tmp")
        with tmp_path.open("w", newline="", encoding="utf-8") as out:
            writer = csv.writer(out)
            writer.writerow(list(columns))
            writer.writerows(itertools.islice(self._iter_file(group), 1, None))
        os.replace(tmp_path, path)
        log.info(
            f"Header of '{group}' written ({len(columns)} columns)",
            extra={"group": group, "new_columns": added},
        )

    def append_rows(self, group: str, rows: Sequence[Sequence[str]]) -> None:
        if not rows:
            return
        path = self._path(group)
        if not path.exists():
            raise ValueError(f"Group '{group}' has no header; write it before appending rows")
        # serialise and encode the whole batch first so a bad cell writes nothing
        buffer = io.StringIO(newline="")
        csv.writer(buffer).writerows(rows)
        data = buffer.getvalue().encode("utf-8")
        with path.open("ab") as f:
            f.write(data)
        log.info(f"Appended {len(rows)} row(s) to '{group}'", extra={"group": group, "rows": len(rows)})


__all__ = ["CsvDirectoryStore"]
