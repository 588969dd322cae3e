"""
Log source interface for logsync.
"""

from __future__ import annotations

from typing import Any, List, Protocol, Sequence, runtime_checkable

from logsync.domain.models import TimeRange


@runtime_checkable
class LogSource(Protocol):
    """
    Anything that returns raw `[epoch_ns_string, line]` pairs for a window.

    Implementations fetch forward in time from `window.start_ns`, without an
    end bound, and raise `SourceFetchError` when the fetch cannot complete.
    """

    name: str

    def fetch_entries(self, window: TimeRange) -> List[Sequence[Any]]:
        ...

    def close(self) -> None:
        ...


__all__ = ["LogSource"]
