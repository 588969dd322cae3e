"""
Orchestrator for one sync run.

A run reads the newest stored timestamp from every destination group, plans
the Loki query window from it, fetches once, routes the parsed records into
groups and reconciles and persists each group in turn.

Usage (example from CLI):
    from logsync.orchestrator import run_sync

    report = run_sync()
    print(report.appended, report.failed_groups)

The destination content is the only state carried between runs, so two runs
must never overlap against the same destination.
"""

from __future__ import annotations

from typing import List, Optional

from logsync.config import Settings, get_settings
from logsync.core.reconcile import Reconciler
from logsync.core.router import GroupRouter
from logsync.core.timestamps import TimestampCodec
from logsync.core.window import last_processed_seconds, plan_window
from logsync.domain.models import GroupResult, LogRecord, SyncReport, TimeRange
from logsync.errors import SourceFetchError
from logsync.source.abstract import LogSource
from logsync.source.loki import LokiSource, parse_entries
from logsync.store import open_store
from logsync.store.abstract import DestinationStore
from logsync.utils.logging import get_logger
from logsync.utils.profiler import profile_block

log = get_logger(__name__)


def find_last_processed_ns(store: DestinationStore, settings: Settings) -> Optional[int]:
    """
    Newest timestamp across the last rows of all data groups, in UTC ns.

    Groups that are ignored, empty, lack the timestamp column or end in an
    unreadable timestamp are skipped.
    """
    codec = TimestampCodec(settings.timezone_offset)
    prefix = settings.ignored_group_prefix
    latest: Optional[int] = None

    for group in store.list_groups():
        if prefix and group.startswith(prefix):
            continue
        try:
            count = store.row_count(group)
            if count < 1:
                continue
            header = store.get_header(group)
            if settings.timestamp_column not in header:
                log.warning(
                    f"Group '{group}' has no '{settings.timestamp_column}' column",
                    extra={"group": group},
                )
                continue
            index = header.index(settings.timestamp_column)
            last_row = store.read_rows(group, count - 1, 1)
        except Exception:  # noqa: BLE001 - an unreadable group must not block the others
            log.exception(f"Could not read last timestamp of group '{group}'", extra={"group": group})
            continue

        cell = last_row[0][index] if last_row and index < len(last_row[0]) else None
        timestamp = codec.try_decode(cell)
        if timestamp is None:
            log.warning(f"Group '{group}' has no readable last timestamp", extra={"group": group})
            continue
        if latest is None or timestamp > latest:
            latest = timestamp
    return latest


class SyncRunner:
    """
    Runs one synchronization pass against an open store and source.

    Parameters
    ----------
    settings : Settings
        Validated settings.
    store : DestinationStore
        Destination the groups are read from and written to.
    source : LogSource
        Where log entries are fetched from.
    dry_run : bool
        Reconcile without writing anything.
    """

    def __init__(
        self,
        settings: Settings,
        store: DestinationStore,
        source: LogSource,
        dry_run: bool = False,
    ) -> None:
        self.settings = settings
        self.store = store
        self.source = source
        self.dry_run = dry_run
        self.reconciler = Reconciler(store, settings)
        self.router = GroupRouter(settings)

    def plan(self, now_seconds: Optional[int] = None) -> tuple[Optional[int], TimeRange]:
        last_ns = find_last_processed_ns(self.store, self.settings)
        window = plan_window(
            last_processed_seconds(last_ns),
            self.settings.overlap_seconds,
            now_seconds=now_seconds,
            lookback_seconds=self.settings.initial_lookback_seconds,
        )
        log.info(
            f"Last processed timestamp: {last_ns}; query window start={window.start_seconds} "
            f"end={window.end_seconds}",
            extra={"last_processed_ns": last_ns, "start": window.start_seconds},
        )
        return last_ns, window

    def sync_group(self, group: str, records: List[LogRecord]) -> GroupResult:
        result = self.reconciler.reconcile(group, records)
        if result.rows and not self.dry_run:
            if result.header_changed:
                self.store.write_header(group, result.columns)
            self.store.append_rows(group, result.rows)
        return GroupResult(
            group=group,
            fetched=result.fetched,
            appended=len(result.rows),
            duplicates=result.duplicates,
            excluded_rows=result.excluded_rows,
            case=result.case,
            new_columns=result.new_columns if result.rows else [],
        )

    def run(self, now_seconds: Optional[int] = None) -> SyncReport:
        report = SyncReport(dry_run=self.dry_run)
        report.last_processed_ns, report.window = self.plan(now_seconds)

        try:
            entries = self.source.fetch_entries(report.window)
        except SourceFetchError as exc:
            log.error(f"[SYNC ABORTED] {exc.message}", extra=exc.details)
            raise
        records = parse_entries(entries, self.settings.timestamp_column)
        report.fetched, report.parsed = len(entries), len(records)
        log.info(
            f"Fetched {report.fetched} entries, {report.parsed} parsed",
            extra={"fetched": report.fetched, "parsed": report.parsed},
        )

        groups = self.router.route(records)
        report.routed = sum(len(group_records) for group_records in groups.values())
        report.skipped_groups = list(self.router.skipped)
        if not groups:
            log.info("No valid records to process")
            return report

        report.groups = self.router.process(groups, self.sync_group)
        return report


def run_sync(
    settings: Optional[Settings] = None,
    store: Optional[DestinationStore] = None,
    source: Optional[LogSource] = None,
    now_seconds: Optional[int] = None,
    dry_run: bool = False,
) -> SyncReport:
    """
    Validate settings, open the collaborators that were not passed in, and run.

    Parameters
    ----------
    settings : Settings | None
        Defaults to the cached environment settings.
    store, source : optional
        Pre-built collaborators; those created here are also closed here.
    now_seconds : int | None
        Override of the current Unix time used for window planning.
    dry_run : bool
        Reconcile without writing.

    Raises
    ------
    ConfigError
        Before any I/O, when required settings are missing.
    SourceFetchError
        When the fetch fails; nothing has been written at that point.
    """
    settings = (settings or get_settings()).validate_for_sync()
    owned_store = store is None
    owned_source = source is None
    store = store or open_store(settings)
    try:
        source = source or LokiSource(settings)
        try:
            log.info(
                "[SYNC START]",
                extra={"store": getattr(store, "name", "?"), "dry_run": dry_run},
            )
            with profile_block("sync") as stats:
                report = SyncRunner(settings, store, source, dry_run=dry_run).run(now_seconds)
            report.duration_seconds = round(stats.duration_seconds, 3)
            report.peak_rss_bytes = stats.peak_rss_bytes
            log.info(
                f"[SYNC COMPLETE] {report.appended} row(s) appended across "
                f"{len(report.groups)} group(s), {len(report.failed_groups)} failed",
                extra={"appended": report.appended, "failed_groups": report.failed_groups},
            )
            return report
        finally:
            if owned_source:
                source.close()
    finally:
        if owned_store:
            store.close()


__all__ = ["SyncRunner", "find_last_processed_ns", "run_sync"]
