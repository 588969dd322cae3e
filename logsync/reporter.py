from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from logsync.core.timestamps import encode
from logsync.domain.models import SyncReport
from logsync.errors import TimestampFormatError

_CASE_LABELS = {
    "A": "A (ahead)",
    "B": "B (boundary)",
    "C": "C (overlap)",
}


def _format_ns(timestamp_ns: Optional[int], offset: str) -> str:
    if timestamp_ns is None:
        return "none"
    try:
        return encode(timestamp_ns, offset)
    except TimestampFormatError:
        return str(timestamp_ns)


def build_table(report: SyncReport, offset: str = "+00:00") -> Table:
    """
    Render a sync report as a rich table, one row per destination group.
    """
    window = report.window
    title = "logsync run" + (" (dry run)" if report.dry_run else "")
    caption_parts = [
        f"last stored: {_format_ns(report.last_processed_ns, offset)}",
        f"fetched {report.fetched} / parsed {report.parsed} / routed {report.routed}",
    ]
    if window is not None:
        caption_parts.insert(1, f"window start: {_format_ns(window.start_ns, offset)}")
    if report.skipped_groups:
        caption_parts.append(f"skipped: {', '.join(report.skipped_groups)}")
    caption_parts.append(f"{report.duration_seconds:.2f}s")
    if report.peak_rss_bytes:
        caption_parts.append(f"peak RSS {report.peak_rss_bytes / (1024 * 1024):.1f} MB")

    table = Table(title=title, box=box.ROUNDED, caption=" │ ".join(caption_parts))
    table.add_column("Group", style="cyan", no_wrap=True)
    table.add_column("Case", style="blue")
    table.add_column("Fetched", justify="right", style="magenta")
    table.add_column("Appended", justify="right", style="bold green")
    table.add_column("Duplicates", justify="right", style="yellow")
    table.add_column("New columns", style="green")
    table.add_column("Error", style="red")

    for group in report.groups:
        case = _CASE_LABELS.get(group.case.value, group.case.value) if group.case else "-"
        table.add_row(
            group.group,
            case,
            f"{group.fetched:,}",
            f"{group.appended:,}",
            f"{group.duplicates:,}",
            ", ".join(group.new_columns) or "-",
            group.error or "",
        )
    return table


def print_report(report: SyncReport, offset: str = "+00:00", console: Optional[Console] = None) -> None:
    console = console or Console()
    if not report.groups:
        console.print("[yellow]No groups were processed.[/yellow]")
        return
    console.print(build_table(report, offset))
