"""Ticket persistence.

TicketQueries is the only code that reads or writes the tickets, complexity
and comments tables. It works on plain model objects and reports "not found"
as None/False; turning that into errors is left to the service layer.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Optional

from .complexity import METRIC_FIELDS, calculate_complexity_score, metric_values
from .db import Database
from .errors import ValidationError
from .export import build_export
from .models import Comment, ComplexityMetadata, Ticket, TicketFilter, now_iso

logger = logging.getLogger(__name__)

# Columns a listing may be sorted by
SORT_FIELDS = (
    "id",
    "title",
    "description",
    "priority",
    "status",
    "created",
    "updated",
    "agent_context",
    "order_value",
)
SORT_ORDERS = ("asc", "desc")

# Gap between neighbouring order values when placing a ticket at a column edge
ORDER_STEP = 1000

_COMPLEXITY_COLUMNS = ("ticket_id",) + METRIC_FIELDS + ("cie_score",)


class TicketQueries:
    """CRUD, ordering and export over the ticket tables.

    Usage:
        db = Database(Path(".mcptix/data/mcptix.db"))
        queries = TicketQueries(db)

        ticket_id = queries.create_ticket(Ticket(title="Fix login"))
        queries.move_ticket(ticket_id, "in-progress")
    """

    def __init__(self, db: Database):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_tickets(
        self,
        filters: Optional[TicketFilter] = None,
        sort: str = "updated",
        order: str = "desc",
        limit: int = 100,
        offset: int = 0,
    ) -> list[Ticket]:
        """List tickets matching all given filters.

        Listed tickets carry complexity metadata but no comments.

        Args:
            filters: Optional status/priority/search filters
            sort: Tickets column to sort by
            order: "asc" or "desc"
            limit: Maximum results
            offset: Skip first N

        Raises:
            ValidationError: If sort or order is not recognised
        """
        sort_column, sort_order = _sort_clause(sort, order)
        where_clause, params = _where_clause(filters)
        params.extend([limit, offset])

        with self.db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT t.* FROM tickets t
                {where_clause}
                ORDER BY t.{sort_column} {sort_order}
                LIMIT ? OFFSET ?
                """,
                params,
            ).fetchall()

            tickets = []
            for row in rows:
                ticket = Ticket.from_row(row)
                ticket.complexity_metadata = _get_complexity(conn, ticket.id)
                tickets.append(ticket)
            return tickets

    def count_tickets(self, filters: Optional[TicketFilter] = None) -> int:
        """Count tickets matching the filters, ignoring limit/offset."""
        where_clause, params = _where_clause(filters)
        with self.db.connection() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS count FROM tickets t {where_clause}",
                params,
            ).fetchone()
        return int(row["count"]) if row else 0

    def get_ticket_by_id(self, ticket_id: str) -> Optional[Ticket]:
        """Get a ticket with its complexity metadata and comments.

        Returns:
            The ticket, or None if no ticket has this id
        """
        with self.db.connection() as conn:
            row = conn.execute("SELECT * FROM tickets WHERE id = ?", (ticket_id,)).fetchone()
            if not row:
                return None
            return _hydrate(conn, row)

    def get_next_ticket(self, status: str = "up-next") -> Optional[Ticket]:
        """Get the top ticket in a status column.

        Highest order_value wins; ties go to the most recently updated.
        """
        with self.db.connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM tickets
                WHERE status = ?
                ORDER BY order_value DESC, updated DESC
                LIMIT 1
                """,
                (status,),
            ).fetchone()
            if not row:
                return None
            return _hydrate(conn, row)

    def export_to_json(self) -> dict:
        """Snapshot every ticket grouped into the five status columns."""
        return build_export(self)

    def get_all_tickets_for_export(self) -> list[Ticket]:
        """All tickets, most recently updated first, fully hydrated."""
        with self.db.connection() as conn:
            rows = conn.execute("SELECT * FROM tickets ORDER BY updated DESC").fetchall()
            return [_hydrate(conn, row) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_ticket(self, ticket: Ticket) -> str:
        """Insert a ticket with its complexity metadata and comments.

        Missing ids and timestamps are generated. A supplied cie_score is
        stored as given; otherwise it is computed from the metrics.

        Returns:
            The ticket id
        """
        ticket_id = ticket.id or str(uuid.uuid4())
        now = now_iso()

        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO tickets (
                    id, title, description, priority, status,
                    created, updated, agent_context, order_value
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    ticket_id,
                    ticket.title,
                    ticket.description or "",
                    ticket.priority or "medium",
                    ticket.status or "backlog",
                    ticket.created or now,
                    ticket.updated or now,
                    ticket.agent_context,
                    ticket.order_value or 0,
                ),
            )

            if ticket.complexity_metadata is not None:
                metadata = ticket.complexity_metadata
                score = metadata.cie_score
                if score is None:
                    score = calculate_complexity_score(metadata)
                _write_complexity(conn, ticket_id, metadata, score)

            for comment in ticket.comments:
                _insert_comment(conn, ticket_id, comment)

        logger.debug("Created ticket %s", ticket_id)
        return ticket_id

    def update_ticket(self, ticket: Ticket) -> bool:
        """Rewrite a ticket's editable fields and bump ``updated``.

        order_value is left alone; use reorder_ticket/move_ticket for that.
        When complexity metadata is supplied its score is recomputed.

        Returns:
            False if no ticket has this id
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE tickets
                SET title = ?, description = ?, priority = ?, status = ?,
                    updated = ?, agent_context = ?
                WHERE id = ?
                """,
                (
                    ticket.title,
                    ticket.description or "",
                    ticket.priority or "medium",
                    ticket.status or "backlog",
                    now_iso(),
                    ticket.agent_context,
                    ticket.id,
                ),
            )
            if cursor.rowcount == 0:
                return False

            if ticket.complexity_metadata is not None:
                metadata = ticket.complexity_metadata
                _write_complexity(conn, ticket.id, metadata, calculate_complexity_score(metadata))

        return True

    def delete_ticket(self, ticket_id: str) -> bool:
        """Delete a ticket; its complexity row and comments go with it."""
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM tickets WHERE id = ?", (ticket_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logger.debug("Deleted ticket %s", ticket_id)
        return deleted

    def add_comment(self, ticket_id: str, comment: Comment) -> str:
        """Attach a comment and bump the ticket's ``updated``.

        Raises:
            sqlite3.IntegrityError: If the ticket does not exist

        Returns:
            The comment id
        """
        with self.db.transaction() as conn:
            comment_id = _insert_comment(conn, ticket_id, comment)
            conn.execute(
                "UPDATE tickets SET updated = ? WHERE id = ?",
                (now_iso(), ticket_id),
            )
        return comment_id

    def reorder_ticket(self, ticket_id: str, order_value: float) -> bool:
        """Set a ticket's position within its column."""
        with self.db.transaction() as conn:
            if not _exists(conn, ticket_id):
                return False
            conn.execute(
                "UPDATE tickets SET order_value = ?, updated = ? WHERE id = ?",
                (order_value, now_iso(), ticket_id),
            )
        return True

    def move_ticket(
        self,
        ticket_id: str,
        status: str,
        order_value: Optional[float] = None,
    ) -> bool:
        """Move a ticket to another column.

        Without an explicit order_value the ticket goes below everything
        already in the destination column.
        """
        with self.db.transaction() as conn:
            if not _exists(conn, ticket_id):
                return False

            if order_value is None:
                row = conn.execute(
                    "SELECT MIN(order_value) AS min_order FROM tickets WHERE status = ?",
                    (status,),
                ).fetchone()
                min_order = row["min_order"] if row else None
                order_value = ORDER_STEP if min_order is None else min_order - ORDER_STEP

            conn.execute(
                "UPDATE tickets SET status = ?, order_value = ?, updated = ? WHERE id = ?",
                (status, order_value, now_iso(), ticket_id),
            )
        logger.debug("Moved ticket %s to %s at %s", ticket_id, status, order_value)
        return True


def _sort_clause(sort: str, order: str) -> tuple[str, str]:
    if sort not in SORT_FIELDS:
        raise ValidationError(
            f"Invalid sort field '{sort}'. Must be one of: {', '.join(SORT_FIELDS)}"
        )
    normalized = (order or "").lower()
    if normalized not in SORT_ORDERS:
        raise ValidationError(f"Invalid sort order '{order}'. Must be 'asc' or 'desc'")
    return sort, normalized.upper()


def _where_clause(filters: Optional[TicketFilter]) -> tuple[str, list]:
    conditions = []
    params: list = []

    if filters:
        if filters.status:
            conditions.append("t.status = ?")
            params.append(filters.status)
        if filters.priority:
            conditions.append("t.priority = ?")
            params.append(filters.priority)
        if filters.search:
            # instr() is case-sensitive, unlike LIKE
            conditions.append("(instr(t.title, ?) > 0 OR instr(t.description, ?) > 0)")
            params.extend([filters.search, filters.search])

    if not conditions:
        return "", params
    return "WHERE " + " AND ".join(conditions), params


def _exists(conn: sqlite3.Connection, ticket_id: str) -> bool:
    return conn.execute("SELECT 1 FROM tickets WHERE id = ?", (ticket_id,)).fetchone() is not None


def _get_complexity(conn: sqlite3.Connection, ticket_id: str) -> ComplexityMetadata:
    row = conn.execute("SELECT * FROM complexity WHERE ticket_id = ?", (ticket_id,)).fetchone()
    return ComplexityMetadata.from_row(ticket_id, row)


def _get_comments(conn: sqlite3.Connection, ticket_id: str) -> list[Comment]:
    rows = conn.execute(
        "SELECT * FROM comments WHERE ticket_id = ? ORDER BY timestamp ASC",
        (ticket_id,),
    ).fetchall()
    return [Comment.from_row(row) for row in rows]


def _hydrate(conn: sqlite3.Connection, row) -> Ticket:
    ticket = Ticket.from_row(row)
    ticket.complexity_metadata = _get_complexity(conn, ticket.id)
    ticket.comments = _get_comments(conn, ticket.id)
    return ticket


def _write_complexity(conn: sqlite3.Connection, ticket_id: str, metadata, score: float) -> None:
    values = metric_values(metadata)
    row = [ticket_id] + [values[name] for name in METRIC_FIELDS] + [score]
    placeholders = ", ".join("?" for _ in _COMPLEXITY_COLUMNS)
    conn.execute(
        f"INSERT OR REPLACE INTO complexity ({', '.join(_COMPLEXITY_COLUMNS)}) VALUES ({placeholders})",
        row,
    )


def _insert_comment(conn: sqlite3.Connection, ticket_id: str, comment: Comment) -> str:
    comment_id = comment.id or str(uuid.uuid4())
    conn.execute(
        """
        INSERT INTO comments (id, ticket_id, content, author, timestamp)
        VALUES (?, ?, ?, ?, ?)
        """,
        (
            comment_id,
            ticket_id,
            comment.content or "",
            comment.author or "developer",
            comment.timestamp or now_iso(),
        ),
    )
    return comment_id
