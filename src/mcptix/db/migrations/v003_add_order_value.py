"""v3: manual ordering within a status column.

Existing tickets are backfilled so each column keeps its most recently
updated ticket on top: with n tickets in a status the values run from
n * 1000 down to 1000.
"""

import logging
import sqlite3

from .base import Migration, drop_column, has_column

logger = logging.getLogger(__name__)

# Frozen copy of tickets.ORDER_STEP; the backfill must not follow later changes to it
ORDER_STEP = 1000

TICKETS_V2 = """
CREATE TABLE {table} (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    priority TEXT CHECK(priority IN ('low', 'medium', 'high')),
    status TEXT CHECK(status IN ('backlog', 'up-next', 'in-progress', 'in-review', 'completed')),
    created TEXT NOT NULL,
    updated TEXT NOT NULL,
    agent_context TEXT
)
"""


def _backfill(conn: sqlite3.Connection) -> None:
    statuses = [row[0] for row in conn.execute("SELECT DISTINCT status FROM tickets").fetchall()]
    for status in statuses:
        ids = [
            row[0]
            for row in conn.execute(
                "SELECT id FROM tickets WHERE status IS ? ORDER BY updated DESC", (status,)
            ).fetchall()
        ]
        count = len(ids)
        for index, ticket_id in enumerate(ids):
            conn.execute(
                "UPDATE tickets SET order_value = ? WHERE id = ?",
                ((count - index) * ORDER_STEP, ticket_id),
            )
        logger.debug("Backfilled order_value for %d tickets in %s", count, status)


def up(conn: sqlite3.Connection) -> None:
    if has_column(conn, "tickets", "order_value"):
        logger.debug("tickets.order_value already exists")
        return
    conn.execute("ALTER TABLE tickets ADD COLUMN order_value REAL DEFAULT 0")
    _backfill(conn)


def down(conn: sqlite3.Connection) -> None:
    if has_column(conn, "tickets", "order_value"):
        drop_column(conn, "tickets", "order_value", TICKETS_V2)


MIGRATION = Migration(version=3, name="add_order_value", up=up, down=down)
