"""Versioned schema migrations.

Each migration module exposes a ``MIGRATION`` instance. A run applies or
rolls back its migrations in one transaction, so a failure leaves the
database at the version it started from. Foreign key enforcement is
suspended for the run so table rebuilds do not cascade into dependent rows.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, Optional

from ...errors import MigrationError
from .base import Migration, drop_column, rebuild_table, supports_drop_column
from .v001_base_schema import MIGRATION as _V001
from .v002_add_agent_context import MIGRATION as _V002
from .v003_add_order_value import MIGRATION as _V003
from .v004_simplify_comments import MIGRATION as _V004

logger = logging.getLogger(__name__)

_REGISTRY: tuple = (_V001, _V002, _V003, _V004)


def get_migrations(candidates: Optional[Iterable] = None) -> list[Migration]:
    """Return valid migrations sorted by version.

    Entries without an integer version or a callable ``up`` are skipped with
    a warning.

    Args:
        candidates: Migrations to validate; defaults to the built-in set
    """
    migrations = []
    for candidate in _REGISTRY if candidates is None else candidates:
        version = getattr(candidate, "version", None)
        up = getattr(candidate, "up", None)
        if not isinstance(version, int) or isinstance(version, bool) or not callable(up):
            logger.warning("Skipping invalid migration: %r", candidate)
            continue
        migrations.append(candidate)
    return sorted(migrations, key=lambda m: m.version)


def _set_version(conn: sqlite3.Connection, version: int) -> None:
    conn.execute("UPDATE schema_version SET version = ? WHERE id = 1", (version,))


def _foreign_keys_enabled(conn: sqlite3.Connection) -> bool:
    return bool(conn.execute("PRAGMA foreign_keys").fetchone()[0])


def _run_step(conn: sqlite3.Connection, migration: Migration, step, new_version: int) -> None:
    """Run one migration step and record ``new_version``."""
    try:
        step(conn)
        _set_version(conn, new_version)
    except Exception as exc:
        logger.error("Migration v%d (%s) failed: %s", migration.version, migration.name, exc)
        raise MigrationError(str(exc), migration.version, migration.name) from exc


def _run_batch(conn: sqlite3.Connection, steps: list) -> None:
    """Run every step in one transaction with foreign key enforcement off."""
    if conn.in_transaction:
        raise MigrationError("Cannot migrate while a transaction is open")

    # PRAGMA foreign_keys is a no-op inside a transaction, so toggle it first
    restore = _foreign_keys_enabled(conn)
    conn.execute("PRAGMA foreign_keys = OFF")
    try:
        conn.execute("BEGIN")
        try:
            for migration, step, new_version in steps:
                logger.info(
                    "%s migration v%d: %s",
                    "Applying" if step is migration.up else "Rolling back",
                    migration.version, migration.name,
                )
                _run_step(conn, migration, step, new_version)
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise
    finally:
        if restore:
            conn.execute("PRAGMA foreign_keys = ON")


def apply_migrations(
    conn: sqlite3.Connection,
    current_version: int,
    target_version: int,
    migrations: Optional[Iterable] = None,
) -> int:
    """Apply every migration with ``current_version < version <= target_version``.

    Returns:
        Version of the last migration applied, or ``current_version``
    """
    pending = [
        m for m in get_migrations(migrations)
        if current_version < m.version <= target_version
    ]
    if not pending:
        logger.debug("No migrations to apply above version %d", current_version)
        return current_version

    steps = []
    for migration in pending:
        steps.append((migration, migration.up, migration.version))

    _run_batch(conn, steps)
    return pending[-1].version


def rollback_migrations(
    conn: sqlite3.Connection,
    current_version: int,
    target_version: int,
    migrations: Optional[Iterable] = None,
) -> int:
    """Roll back every migration with ``target_version < version <= current_version``.

    Migrations are undone newest first. Nothing runs unless every selected
    migration has a ``down`` step.

    Returns:
        Schema version after rolling back
    """
    if target_version >= current_version:
        logger.info(
            "Nothing to roll back: target version %d is not below current version %d",
            target_version, current_version,
        )
        return current_version

    available = get_migrations(migrations)
    selected = [m for m in available if target_version < m.version <= current_version]
    missing = [m for m in selected if m.down is None]
    if missing:
        first = missing[0]
        raise MigrationError("Migration has no down step", first.version, first.name)

    steps = []
    for migration in reversed(selected):
        lower = [m.version for m in available if m.version < migration.version]
        steps.append((migration, migration.down, max(lower) if lower else 0))

    _run_batch(conn, steps)
    return steps[-1][2] if steps else current_version


__all__ = [
    "Migration",
    "apply_migrations",
    "drop_column",
    "get_migrations",
    "rebuild_table",
    "rollback_migrations",
    "supports_drop_column",
]
