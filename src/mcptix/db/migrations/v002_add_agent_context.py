"""v2: free-form agent_context column on tickets."""

import logging
import sqlite3

from .base import Migration, drop_column, has_column

logger = logging.getLogger(__name__)

# tickets as of v1, used when the column has to be dropped by rebuilding
TICKETS_V1 = """
CREATE TABLE {table} (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    priority TEXT CHECK(priority IN ('low', 'medium', 'high')),
    status TEXT CHECK(status IN ('backlog', 'up-next', 'in-progress', 'in-review', 'completed')),
    created TEXT NOT NULL,
    updated TEXT NOT NULL
)
"""


def up(conn: sqlite3.Connection) -> None:
    if has_column(conn, "tickets", "agent_context"):
        logger.debug("tickets.agent_context already exists")
        return
    conn.execute("ALTER TABLE tickets ADD COLUMN agent_context TEXT")


def down(conn: sqlite3.Connection) -> None:
    if has_column(conn, "tickets", "agent_context"):
        drop_column(conn, "tickets", "agent_context", TICKETS_V1)


MIGRATION = Migration(version=2, name="add_agent_context", up=up, down=down)
