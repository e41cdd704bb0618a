"""Migration descriptor and SQLite compatibility helpers shared by migrations."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

# ALTER TABLE ... DROP COLUMN landed in SQLite 3.35.0
DROP_COLUMN_MIN_VERSION = (3, 35, 0)


@dataclass(frozen=True)
class Migration:
    """A versioned schema change.

    ``up`` is required; ``down`` is optional but a migration without one
    cannot be rolled back.
    """

    version: int
    name: str
    up: Callable[[sqlite3.Connection], None]
    down: Optional[Callable[[sqlite3.Connection], None]] = None


def execute_statements(conn: sqlite3.Connection, statements: Iterable[str]) -> None:
    """Run DDL statements one by one.

    executescript() would COMMIT the surrounding migration transaction, so
    statements are executed individually.
    """
    for sql in statements:
        conn.execute(sql)


def sqlite_version(conn: sqlite3.Connection) -> tuple[int, ...]:
    """Return the engine version reported by the connection."""
    version = conn.execute("SELECT sqlite_version()").fetchone()[0]
    return tuple(int(part) for part in version.split("."))


def supports_drop_column(conn: sqlite3.Connection) -> bool:
    return sqlite_version(conn) >= DROP_COLUMN_MIN_VERSION


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    return [row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()]


def has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    return column in table_columns(conn, table)


def _index_definitions(conn: sqlite3.Connection, table: str) -> list[tuple[str, str, list[str]]]:
    """Return (name, sql, columns) for every explicitly created index on a table."""
    indexes = []
    rows = conn.execute(
        "SELECT name, sql FROM sqlite_master WHERE type = 'index' AND tbl_name = ? AND sql IS NOT NULL",
        (table,),
    ).fetchall()
    for name, sql in rows:
        columns = [info[2] for info in conn.execute(f"PRAGMA index_info({name})").fetchall()]
        indexes.append((name, sql, columns))
    return indexes


def rebuild_table(
    conn: sqlite3.Connection,
    table: str,
    create_sql: str,
    dropped_columns: Iterable[str] = (),
) -> None:
    """Recreate ``table`` from ``create_sql`` and copy its rows across.

    ``create_sql`` must contain a ``{table}`` placeholder for the table name.
    Columns present in both the old and new definitions are copied; indexes
    that do not reference a dropped column are recreated.

    Must run with foreign key enforcement off, or dropping the old table
    cascades into dependent rows.
    """
    dropped = set(dropped_columns)
    temp_table = f"{table}_temp"

    indexes = [
        (name, sql)
        for name, sql, columns in _index_definitions(conn, table)
        if not dropped.intersection(columns)
    ]
    old_columns = table_columns(conn, table)

    conn.execute(f"DROP TABLE IF EXISTS {temp_table}")
    conn.execute(create_sql.format(table=temp_table))
    new_columns = set(table_columns(conn, temp_table))
    copied = [c for c in old_columns if c in new_columns and c not in dropped]
    column_list = ", ".join(copied)

    conn.execute(
        f"INSERT INTO {temp_table} ({column_list}) SELECT {column_list} FROM {table}"
    )
    conn.execute(f"DROP TABLE {table}")
    conn.execute(f"ALTER TABLE {temp_table} RENAME TO {table}")

    for name, sql in indexes:
        conn.execute(sql)
        logger.debug("Recreated index %s on %s", name, table)


def drop_column(conn: sqlite3.Connection, table: str, column: str, create_sql: str) -> None:
    """Drop one column, rebuilding the table on engines without DROP COLUMN.

    Args:
        conn: Connection inside the migration transaction
        table: Table to alter
        column: Column to remove
        create_sql: Definition of the table without ``column``, with a
            ``{table}`` placeholder for the name
    """
    if supports_drop_column(conn):
        conn.execute(f"ALTER TABLE {table} DROP COLUMN {column}")
        logger.info("Dropped %s.%s with ALTER TABLE DROP COLUMN", table, column)
    else:
        rebuild_table(conn, table, create_sql, dropped_columns=[column])
        logger.info("Dropped %s.%s by rebuilding the table", table, column)
