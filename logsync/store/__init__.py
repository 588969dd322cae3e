"""
Destination store package for logsync.

Re-exports the store interfaces and backends, and `open_store` which builds
the backend selected by `DESTINATION_BACKEND`.
"""

from logsync.config import Settings
from logsync.store.abstract import AbstractDestinationStore, DestinationStore, Row
from logsync.store.csv_store import CsvDirectoryStore
from logsync.store.db_factory import build_dsn, get_sync_connection
from logsync.store.postgres import PostgresStore


def open_store(settings: Settings) -> AbstractDestinationStore:
    """Open the destination configured in `settings`."""
    if settings.destination_backend == "postgres":
        return PostgresStore(get_sync_connection(build_dsn(settings)), schema=settings.db_schema)
    return CsvDirectoryStore(settings.destination_dir)


__all__ = [
    # Abstracts
    "AbstractDestinationStore",
    "DestinationStore",
    "Row",
    # Backends
    "CsvDirectoryStore",
    "PostgresStore",
    "open_store",
]
