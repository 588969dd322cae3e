"""
Destination store interfaces for logsync.

A destination holds named groups. Each group is a header row (first cell by
convention the timestamp column) and an append-only sequence of data rows.
Rows are addressed by 0-based data-row index; the header is not counted.
Cells are text; rows written before the header was widened may be shorter
than the header.
"""

from __future__ import annotations

import abc
from types import TracebackType
from typing import List, Optional, Protocol, Sequence, Type, runtime_checkable

Row = List[Optional[str]]


@runtime_checkable
class DestinationStore(Protocol):
    """
    Common interface all destination backends implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier of the backend.
    """

    name: str

    def list_groups(self) -> List[str]:
        """Names of every group currently present."""
        ...

    def get_header(self, group: str) -> List[str]:
        """Ordered column names; empty when the group does not exist."""
        ...

    def row_count(self, group: str) -> int:
        """Number of data rows; 0 when the group does not exist."""
        ...

    def read_rows(self, group: str, start: int, count: int) -> List[Row]:
        """Up to `count` data rows beginning at 0-based index `start`."""
        ...

    def write_header(self, group: str, columns: Sequence[str]) -> None:
        """Create the group or widen its header to `columns`."""
        ...

    def append_rows(self, group: str, rows: Sequence[Sequence[str]]) -> None:
        """Append rows after the last data row."""
        ...

    def close(self) -> None:
        ...


class AbstractDestinationStore(abc.ABC):
    """
    ABC helper for class-based backends; adds context-manager support and
    the header widening check shared by all backends.
    """

    name: str

    @abc.abstractmethod
    def list_groups(self) -> List[str]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def get_header(self, group: str) -> List[str]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def row_count(self, group: str) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    def read_rows(self, group: str, start: int, count: int) -> List[Row]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def write_header(self, group: str, columns: Sequence[str]) -> None:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def append_rows(self, group: str, rows: Sequence[Sequence[str]]) -> None:  # pragma: no cover
        raise NotImplementedError

    def close(self) -> None:
        """Release resources. Backends without any may keep the default."""

    def __enter__(self) -> "AbstractDestinationStore":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    @staticmethod
    def _check_widening(group: str, current: Sequence[str], columns: Sequence[str]) -> List[str]:
        """Return the columns to add; reject anything but an append-only change."""
        if list(columns[: len(current)]) != list(current):
            raise ValueError(
                f"Header of group '{group}' can only be widened: "
                f"{list(current)} -> {list(columns)}"
            )
        return list(columns[len(current):])


__all__ = ["AbstractDestinationStore", "DestinationStore", "Row"]
