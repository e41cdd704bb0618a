"""v4: reduce comments to id, ticket_id, content, author and timestamp.

Text that only lived in the legacy ``full_text`` or ``summary`` columns is
folded into ``content`` before those columns go away.
"""

import logging
import sqlite3

from .base import Migration, has_column, rebuild_table, supports_drop_column

logger = logging.getLogger(__name__)

LEGACY_COLUMNS = ("type", "status", "summary", "full_text", "display")

COMMENTS_V4 = """
CREATE TABLE {table} (
    id TEXT PRIMARY KEY,
    ticket_id TEXT NOT NULL,
    content TEXT NOT NULL,
    author TEXT CHECK(author IN ('developer', 'agent')),
    timestamp TEXT NOT NULL,
    FOREIGN KEY (ticket_id) REFERENCES tickets(id) ON DELETE CASCADE
)
"""

COMMENTS_V3 = """
CREATE TABLE {table} (
    id TEXT PRIMARY KEY,
    ticket_id TEXT NOT NULL,
    content TEXT,
    type TEXT DEFAULT 'comment' CHECK(type IN ('comment', 'request_changes', 'change_proposal')),
    author TEXT CHECK(author IN ('developer', 'agent')),
    status TEXT DEFAULT 'open' CHECK(status IN ('open', 'in_progress', 'resolved', 'wont_fix')),
    timestamp TEXT NOT NULL,
    summary TEXT,
    full_text TEXT,
    display TEXT DEFAULT 'collapsed' CHECK(display IN ('expanded', 'collapsed')),
    FOREIGN KEY (ticket_id) REFERENCES tickets(id) ON DELETE CASCADE
)
"""

INDEX = "CREATE INDEX IF NOT EXISTS idx_comments_ticket_id ON comments(ticket_id)"


def _fold_legacy_text(conn: sqlite3.Connection) -> None:
    for column in ("full_text", "summary"):
        if has_column(conn, "comments", column):
            cursor = conn.execute(
                f"""
                UPDATE comments SET content = {column}
                WHERE (content IS NULL OR content = '')
                  AND {column} IS NOT NULL AND {column} != ''
                """
            )
            if cursor.rowcount:
                logger.info("Copied %s into content for %d comments", column, cursor.rowcount)
    conn.execute("UPDATE comments SET content = '' WHERE content IS NULL")


def up(conn: sqlite3.Connection) -> None:
    _fold_legacy_text(conn)

    if supports_drop_column(conn):
        for column in LEGACY_COLUMNS:
            if has_column(conn, "comments", column):
                conn.execute(f"ALTER TABLE comments DROP COLUMN {column}")

    # Rebuild regardless so content picks up its NOT NULL constraint
    rebuild_table(conn, "comments", COMMENTS_V4, dropped_columns=LEGACY_COLUMNS)
    conn.execute(INDEX)


def down(conn: sqlite3.Connection) -> None:
    rebuild_table(conn, "comments", COMMENTS_V3)
    conn.execute(INDEX)


MIGRATION = Migration(version=4, name="simplify_comments", up=up, down=down)
