"""
Pytest configuration for logsync.

Provides fixtures for:
- Settings wired to a temporary CSV destination
- An in-memory destination store that counts reads
- A canned log source
- PostgreSQL connectivity for integration tests
"""

from __future__ import annotations

import json
import os
import uuid
from typing import Any, Dict, Generator, List, Optional, Sequence

import psycopg
import pytest
from psycopg import sql

from logsync.config import Settings
from logsync.domain.models import LogRecord, TimeRange
from logsync.store.abstract import AbstractDestinationStore, Row
from logsync.store.csv_store import CsvDirectoryStore

TIMESTAMP_COLUMN = "_timestamp"
OFFSET = "+09:00"


class MemoryStore(AbstractDestinationStore):
    """Destination kept in dicts; records every read for assertions."""

    name = "memory"

    def __init__(self) -> None:
        self.headers: Dict[str, List[str]] = {}
        self.rows: Dict[str, List[Row]] = {}
        self.reads: List[tuple] = []
        self.closed = False

    def list_groups(self) -> List[str]:
        return sorted(self.headers)

    def get_header(self, group: str) -> List[str]:
        return list(self.headers.get(group, []))

    def row_count(self, group: str) -> int:
        return len(self.rows.get(group, []))

    def read_rows(self, group: str, start: int, count: int) -> List[Row]:
        self.reads.append((group, start, count))
        return [list(r) for r in self.rows.get(group, [])[start : start + count]]

    def write_header(self, group: str, columns: Sequence[str]) -> None:
        self._check_widening(group, self.headers.get(group, []), columns)
        self.headers[group] = list(columns)
        self.rows.setdefault(group, [])

    def append_rows(self, group: str, rows: Sequence[Sequence[str]]) -> None:
        if group not in self.headers:
            raise ValueError(f"Group '{group}' has no header")
        self.rows[group].extend(list(r) for r in rows)

    def close(self) -> None:
        self.closed = True


class StaticSource:
    """Log source returning canned `[ns, line]` pairs."""

    name = "static"

    def __init__(self, entries: Optional[List[List[str]]] = None, error: Optional[Exception] = None) -> None:
        self.entries = entries or []
        self.error = error
        self.windows: List[TimeRange] = []
        self.closed = False

    def fetch_entries(self, window: TimeRange) -> List[List[str]]:
        self.windows.append(window)
        if self.error is not None:
            raise self.error
        return list(self.entries)

    def close(self) -> None:
        self.closed = True


def make_record(timestamp_ns: int, **fields: Any) -> LogRecord:
    return LogRecord.from_payload(fields, timestamp_ns, TIMESTAMP_COLUMN)


def make_entry(timestamp_ns: int, **fields: Any) -> List[str]:
    return [str(timestamp_ns), json.dumps(fields)]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        loki_endpoint="http://loki.test",
        base_query='{job="app"}',
        timezone_offset=OFFSET,
        destination_dir=str(tmp_path / "dest"),
        tail_rows=3,
    )


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def csv_store(settings: Settings) -> CsvDirectoryStore:
    return CsvDirectoryStore(settings.destination_dir)


@pytest.fixture(scope="session")
def test_dsn() -> str:
    """
    Database connection string for integration tests.
    """
    return (
        f"postgresql://{os.getenv('DB_USER', 'postgres')}:{os.getenv('DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('DB_HOST', 'localhost')}:{os.getenv('DB_PORT', '5432')}"
        f"/{os.getenv('DB_NAME', 'logsync')}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def pg_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Autocommit connection for one test. Skips when the database is unreachable.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")
    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def pg_schema(pg_connection: psycopg.Connection) -> Generator[str, None, None]:
    """
    Unique schema name, dropped with everything in it after the test.
    """
    schema = f"logsync_test_{uuid.uuid4().hex[:8]}"
    yield schema
    if not pg_connection.closed:
        pg_connection.execute(
            sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(schema))
        )
