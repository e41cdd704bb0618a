"""Database connection management for mcptix."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

from .schema import CURRENT_SCHEMA_VERSION, get_schema_version, migrate_database

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class Database:
    """SQLite database wrapper owning a single connection.

    Construct one per process and hand it to TicketQueries; migrations run
    on construction unless ``migrate=False``.

    Usage:
        db = Database(Path(".mcptix/data/mcptix.db"))

        # Simple query
        with db.connection() as conn:
            rows = conn.execute("SELECT * FROM tickets").fetchall()

        # Transaction with auto-commit/rollback
        with db.transaction() as conn:
            conn.execute("INSERT INTO tickets ...")
            conn.execute("INSERT INTO complexity ...")
    """

    def __init__(
        self,
        db_path: Union[Path, str],
        migrate: bool = True,
        clear_data: bool = False,
    ):
        """Open the database, running migrations if needed.

        Args:
            db_path: Path to the SQLite database file, or ":memory:"
            migrate: Bring the schema up to CURRENT_SCHEMA_VERSION
            clear_data: Delete an existing database file before opening
        """
        self.db_path = db_path if str(db_path) == MEMORY_PATH else Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

        if self.is_file:
            self._ensure_directory()
            if clear_data and self.db_path.exists():
                logger.info("Clearing existing database at %s", self.db_path)
                self.db_path.unlink()

        if migrate:
            self.migrate()

    @property
    def is_file(self) -> bool:
        return isinstance(self.db_path, Path)

    def _ensure_directory(self) -> None:
        """Create parent directory if it doesn't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode: transactions are opened explicitly with BEGIN.
        conn = sqlite3.connect(
            str(self.db_path),
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        logger.debug("Opened database connection: %s", self.db_path)
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get the database connection with row factory.

        Yields:
            sqlite3.Connection configured with Row factory

        Example:
            with db.connection() as conn:
                row = conn.execute("SELECT * FROM tickets WHERE id = ?", (ticket_id,)).fetchone()
                if row:
                    print(row["title"])
        """
        if self._conn is None:
            self._conn = self._connect()
        yield self._conn

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Get the connection inside a transaction.

        Commits on successful exit, rolls back on exception. Joins an
        already-open transaction instead of nesting one.

        Yields:
            sqlite3.Connection in a transaction
        """
        with self.connection() as conn:
            if conn.in_transaction:
                yield conn
                return

            conn.execute("BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def migrate(self, target_version: int = CURRENT_SCHEMA_VERSION) -> int:
        """Bring the schema to ``target_version`` (forward or backward).

        Returns:
            Schema version after migrating
        """
        with self.connection() as conn:
            return migrate_database(conn, target_version)

    def get_version(self) -> int:
        """Get current schema version.

        Returns:
            Current schema version number
        """
        with self.connection() as conn:
            return get_schema_version(conn)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("Closed database connection: %s", self.db_path)

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
