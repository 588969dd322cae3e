"""
PostgreSQL connection factory for logsync.

A sync run is single-threaded and short, so it uses one dedicated connection
rather than a pool. Acquiring it retries transient connection failures with
tenacity; statements issued on the connection are never retried.
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from logsync.config import Settings, get_settings


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Open an autocommit connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors. Writes are grouped with `conn.transaction()` by the caller.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn(), autocommit=True)


__all__ = ["build_dsn", "get_sync_connection"]
