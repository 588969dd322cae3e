"""
Routing of fetched records into destination groups.

Each record names its group through the grouping-key field. Groups are then
processed one after another; a failure in one group is logged and recorded in
its result, and the remaining groups still run.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List

from logsync.config import Settings
from logsync.domain.models import GroupResult, LogRecord, is_valid_group_name
from logsync.errors import GroupProcessingError, RecordParseError
from logsync.utils.logging import get_logger

log = get_logger(__name__)

GroupHandler = Callable[[str, List[LogRecord]], GroupResult]


class GroupRouter:
    """
    Partitions records by grouping key and isolates per-group failures.

    Parameters
    ----------
    settings : Settings
        Supplies the grouping-key field and the prefix of ignored groups.
    """

    def __init__(self, settings: Settings) -> None:
        self.group_key_field = settings.group_key_field
        self.ignored_prefix = settings.ignored_group_prefix
        self.skipped: List[str] = []
        self.rejected = 0

    def is_ignored(self, group: str) -> bool:
        return bool(self.ignored_prefix) and group.startswith(self.ignored_prefix)

    def group_of(self, record: LogRecord) -> str:
        """
        Grouping key of `record`.

        Raises
        ------
        RecordParseError
            If the key is absent, empty, not a string or has characters
            outside `[A-Za-z0-9_-]`.
        """
        key = record.group_key(self.group_key_field)
        if not key:
            raise RecordParseError(
                f"Record has no '{self.group_key_field}'",
                details={"timestamp_ns": record.timestamp_ns},
            )
        if not is_valid_group_name(key):
            raise RecordParseError(
                f"'{self.group_key_field}' value {key!r} contains disallowed characters",
                details={"timestamp_ns": record.timestamp_ns, "group": key},
            )
        return key

    def route(self, records: Iterable[LogRecord]) -> Dict[str, List[LogRecord]]:
        """Group records by key, keeping their order; drop invalid and ignored ones."""
        groups: Dict[str, List[LogRecord]] = {}
        for record in records:
            try:
                group = self.group_of(record)
            except RecordParseError as exc:
                self.rejected += 1
                log.warning(f"Skipping record: {exc}", extra=exc.details)
                continue
            if self.is_ignored(group):
                if group not in self.skipped:
                    self.skipped.append(group)
                    log.info(
                        f"Skipping group '{group}': name starts with '{self.ignored_prefix}'",
                        extra={"group": group},
                    )
                continue
            groups.setdefault(group, []).append(record)
        return groups

    def process(
        self, groups: Dict[str, List[LogRecord]], handler: GroupHandler
    ) -> List[GroupResult]:
        """Run `handler` for each group; failures become error results."""
        results: List[GroupResult] = []
        for group, records in groups.items():
            log.info(f"[GROUP START] {group}", extra={"group": group, "records": len(records)})
            try:
                result = handler(group, records)
                log.info(
                    f"[GROUP DONE] {group}",
                    extra={"group": group, "appended": result.appended},
                )
            except Exception as exc:  # noqa: BLE001 - one group must not stop the others
                error = GroupProcessingError(group, exc)
                log.exception(f"[GROUP FAILED] {error.message}", extra=error.details)
                result = GroupResult(group=group, fetched=len(records), error=str(exc))
            results.append(result)
        return results


__all__ = ["GroupHandler", "GroupRouter"]
