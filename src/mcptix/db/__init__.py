"""SQLite storage for mcptix tickets.

Usage:
    from mcptix.db import Database

    db = Database(Path(".mcptix/data/mcptix.db"))

    with db.transaction() as conn:
        conn.execute("INSERT INTO tickets ...")
"""

from .connection import Database
from .schema import CURRENT_SCHEMA_VERSION, get_available_migrations

__all__ = ["Database", "CURRENT_SCHEMA_VERSION", "get_available_migrations"]
