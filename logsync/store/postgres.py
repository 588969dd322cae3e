"""
PostgreSQL destination.

Each group is a table named after the group inside a dedicated schema. Header
cells map to `text` columns in ordinal order; an internal bigserial column
records insertion order and is hidden from the header. Widening adds columns,
so earlier rows read back NULL for them. Rows are appended with COPY.
"""

from __future__ import annotations

from typing import List, Sequence

import psycopg
from psycopg import sql

from logsync.domain.models import is_valid_group_name
from logsync.store.abstract import AbstractDestinationStore, Row
from logsync.utils.logging import get_logger

log = get_logger(__name__)

ROW_ID_COLUMN = "_logsync_row"
# NAMEDATALEN - 1; longer identifiers are silently truncated
MAX_IDENTIFIER_BYTES = 63


def check_column_names(group: str, columns: Sequence[str]) -> None:
    """
    Reject names that would not read back unchanged as table columns.

    Raises
    ------
    ValueError
        For an empty name, one containing NUL, one longer than 63 UTF-8 bytes,
        or the internal row id column.
    """
    bad: List[str] = []
    for name in columns:
        if (
            not name
            or "\x00" in name
            or len(name.encode("utf-8")) > MAX_IDENTIFIER_BYTES
            or name == ROW_ID_COLUMN
        ):
            bad.append(name)
    if bad:
        raise ValueError(
            f"Group '{group}' has field names PostgreSQL cannot store as columns "
            f"(empty, over {MAX_IDENTIFIER_BYTES} bytes, or reserved): {bad!r}"
        )


class PostgresStore(AbstractDestinationStore):
    """
    Destination backed by one table per group.

    Parameters
    ----------
    conn : psycopg.Connection
        Autocommit connection (see `db_factory.get_sync_connection`).
    schema : str
        Schema holding the group tables; created when missing.
    """

    name: str = "postgres"

    def __init__(self, conn: psycopg.Connection, schema: str = "logsync") -> None:
        self._conn = conn
        self.schema = schema
        self._conn.execute(
            sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(schema))
        )

    def _table(self, group: str) -> sql.Identifier:
        if not is_valid_group_name(group):
            raise ValueError(f"Invalid group name {group!r}")
        return sql.Identifier(self.schema, group)

    def list_groups(self) -> List[str]:
        rows = self._conn.execute(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s ORDER BY table_name",
            (self.schema,),
        ).fetchall()
        return [name for (name,) in rows if is_valid_group_name(name)]

    def get_header(self, group: str) -> List[str]:
        rows = self._conn.execute(
            "SELECT column_name FROM information_schema.columns "
            "WHERE table_schema = %s AND table_name = %s AND column_name <> %s "
            "ORDER BY ordinal_position",
            (self.schema, group, ROW_ID_COLUMN),
        ).fetchall()
        return [name for (name,) in rows]

    def _exists(self, group: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM information_schema.tables WHERE table_schema = %s AND table_name = %s",
            (self.schema, group),
        ).fetchone()
        return row is not None

    def row_count(self, group: str) -> int:
        if not self._exists(group):
            return 0
        row = self._conn.execute(
            sql.SQL("SELECT count(*) FROM {}").format(self._table(group))
        ).fetchone()
        return int(row[0]) if row else 0

    def read_rows(self, group: str, start: int, count: int) -> List[Row]:
        header = self.get_header(group)
        if not header or count <= 0 or start < 0:
            return []
        query = sql.SQL("SELECT {} FROM {} ORDER BY {} OFFSET %s LIMIT %s").format(
            sql.SQL(", ").join(sql.Identifier(c) for c in header),
            self._table(group),
            sql.Identifier(ROW_ID_COLUMN),
        )
        return [list(row) for row in self._conn.execute(query, (start, count)).fetchall()]

    def write_header(self, group: str, columns: Sequence[str]) -> None:
        table = self._table(group)
        current = self.get_header(group)
        added = self._check_widening(group, current, columns)
        if not added:
            return
        check_column_names(group, added)
        with self._conn.transaction():
            if not current:
                self._conn.execute(
                    sql.SQL("CREATE TABLE IF NOT EXISTS {} ({} bigserial PRIMARY KEY, {})").format(
                        table,
                        sql.Identifier(ROW_ID_COLUMN),
                        sql.SQL(", ").join(
                            sql.SQL("{} text").format(sql.Identifier(c)) for c in columns
                        ),
                    )
                )
            else:
                for column in added:
                    self._conn.execute(
                        sql.SQL("ALTER TABLE {} ADD COLUMN IF NOT EXISTS {} text").format(
                            table, sql.Identifier(column)
                        )
                    )
        log.info(
            f"Header of '{group}' written ({len(columns)} columns)",
            extra={"group": group, "new_columns": added},
        )

    def append_rows(self, group: str, rows: Sequence[Sequence[str]]) -> None:
        if not rows:
            return
        header = self.get_header(group)
        if not header:
            raise ValueError(f"Group '{group}' has no header; write it before appending rows")
        width = len(rows[0])
        copy_sql = sql.SQL("COPY {} ({}) FROM STDIN").format(
            self._table(group),
            sql.SQL(", ").join(sql.Identifier(c) for c in header[:width]),
        )
        with self._conn.transaction():
            with self._conn.cursor() as cur:
                with cur.copy(copy_sql) as copy:
                    for row in rows:
                        copy.write_row(row)
        log.info(f"Appended {len(rows)} row(s) to '{group}'", extra={"group": group, "rows": len(rows)})

    def close(self) -> None:
        self._conn.close()


__all__ = ["MAX_IDENTIFIER_BYTES", "PostgresStore", "ROW_ID_COLUMN", "check_column_names"]
