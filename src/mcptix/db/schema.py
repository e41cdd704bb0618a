"""Schema version tracking for mcptix.

The table definitions themselves live in the versioned migrations under
``mcptix.db.migrations``; this module records which version a database is
at and drives it to a target version.
"""

import logging
import sqlite3

from .migrations import apply_migrations, get_migrations, rollback_migrations

logger = logging.getLogger(__name__)

# Must match the highest migration version
CURRENT_SCHEMA_VERSION = 4

SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    version INTEGER NOT NULL
)
"""


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Return the applied schema version, or 0 for an uninitialized database."""
    table = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
    ).fetchone()
    if not table:
        return 0
    row = conn.execute("SELECT version FROM schema_version WHERE id = 1").fetchone()
    return row[0] if row else 0


def migrate_database(conn: sqlite3.Connection, target_version: int = CURRENT_SCHEMA_VERSION) -> int:
    """Bring a database to ``target_version``.

    Creates the schema_version singleton on first use, then applies pending
    migrations or rolls back newer ones.

    Args:
        conn: Open connection with no transaction in progress
        target_version: Version to migrate to

    Returns:
        Schema version after migrating
    """
    conn.execute(SCHEMA_VERSION_TABLE)
    conn.execute("INSERT OR IGNORE INTO schema_version (id, version) VALUES (1, 0)")

    current_version = get_schema_version(conn)

    if current_version < target_version:
        logger.info("Migrating database from version %d to %d", current_version, target_version)
        apply_migrations(conn, current_version, target_version)
    elif current_version > target_version:
        logger.info("Rolling back database from version %d to %d", current_version, target_version)
        rollback_migrations(conn, current_version, target_version)
    else:
        logger.debug("Database schema is up to date (version %d)", current_version)

    return get_schema_version(conn)


def get_available_migrations() -> list[dict]:
    """List known migrations as ``{"version", "name"}`` dicts."""
    return [{"version": m.version, "name": m.name} for m in get_migrations()]
