"""
Query window planning.

Only the start of the window bounds the Loki query; the end is reported for
logging. Bounding just the start means entries that land between planning and
fetching are still returned.
"""

from __future__ import annotations

import time
from typing import Optional

from logsync.core.timestamps import NANOS_PER_SECOND
from logsync.domain.models import TimeRange

DEFAULT_LOOKBACK_SECONDS = 3600


def last_processed_seconds(timestamp_ns: Optional[int]) -> Optional[int]:
    if timestamp_ns is None:
        return None
    return timestamp_ns // NANOS_PER_SECOND


def plan_window(
    last_processed: Optional[int],
    overlap_seconds: int,
    now_seconds: Optional[int] = None,
    lookback_seconds: int = DEFAULT_LOOKBACK_SECONDS,
) -> TimeRange:
    """
    Compute the next fetch window.

    Parameters
    ----------
    last_processed : int | None
        Newest timestamp already stored, in Unix seconds.
    overlap_seconds : int
        Margin re-fetched behind `last_processed` for late entries.
    now_seconds : int | None
        Current Unix time; defaults to the wall clock.
    lookback_seconds : int
        How far back to start when there is no recent state.

    Returns
    -------
    TimeRange
        `now - lookback` when there is no state or it is at least `lookback`
        old, otherwise `last_processed - overlap`. The end is always `now`.
    """
    if overlap_seconds < 0:
        raise ValueError(f"overlap_seconds must be >= 0, got {overlap_seconds}")
    now = int(time.time()) if now_seconds is None else now_seconds
    floor = now - lookback_seconds

    start = floor
    if last_processed is not None and last_processed > floor:
        start = last_processed - overlap_seconds
    return TimeRange(start_seconds=start, end_seconds=now)


__all__ = ["DEFAULT_LOOKBACK_SECONDS", "last_processed_seconds", "plan_window"]
