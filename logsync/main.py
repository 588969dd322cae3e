from __future__ import annotations

import json
import sys

import typer

from logsync.config import get_settings
from logsync.errors import ConfigError, SourceFetchError
from logsync.orchestrator import SyncRunner, run_sync
from logsync.reporter import print_report
from logsync.source.loki import LokiSource
from logsync.store import open_store
from logsync.utils.logging import configure_logging

app = typer.Typer(help="Incrementally sync Loki logs into an append-only tabular destination.")

EXIT_FETCH_FAILED = 1
EXIT_CONFIG_ERROR = 2


@app.command()
def info() -> None:
    """
    Show effective configuration values (secrets masked).
    """
    settings = get_settings()
    typer.echo(json.dumps(settings.masked(), indent=2, sort_keys=True))
    missing = settings.missing_for_sync()
    if missing:
        typer.echo(f"Missing for sync: {', '.join(missing)}", err=True)


@app.command()
def window() -> None:
    """
    Print the query window the next run would use, without fetching.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    try:
        settings.validate_for_sync()
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc.message}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    with open_store(settings) as store:
        source = LokiSource(settings)
        try:
            last_ns, planned = SyncRunner(settings, store, source).plan()
        finally:
            source.close()
    typer.echo(
        json.dumps(
            {
                "last_processed_ns": last_ns,
                "start_seconds": planned.start_seconds,
                "end_seconds": planned.end_seconds,
                "start_ns": planned.start_ns,
            },
            indent=2,
        )
    )


@app.command()
def run(
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Fetch and reconcile, but do not write to the destination.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the run report as JSON instead of a table.",
    ),
) -> None:
    """
    Run one synchronization pass.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs)
    try:
        report = run_sync(settings, dry_run=dry_run)
    except ConfigError as exc:
        typer.echo(f"Configuration error: {exc.message}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    except SourceFetchError as exc:
        typer.echo(f"Fetch failed: {exc.message}", err=True)
        raise typer.Exit(code=EXIT_FETCH_FAILED)

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
    else:
        print_report(report, offset=settings.timezone_offset)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
