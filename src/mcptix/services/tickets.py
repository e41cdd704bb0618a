"""Shared ticket operations for CLI and MCP.

Every function takes a TicketQueries instance and returns a plain dict:
either the result or ``{"error": code, "message": ...}``.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Optional

from ..errors import McptixError, TicketNotFoundError, ValidationError
from ..models import (
    AUTHORS,
    EDITABLE_FIELDS,
    PRIORITIES,
    STATUSES,
    Comment,
    ComplexityMetadata,
    Ticket,
    TicketFilter,
)
from ..output.pagination import build_pagination
from ..tickets import TicketQueries

logger = logging.getLogger(__name__)

STATS_GROUPS = ("status", "priority")


def returns_error_dict(func):
    """Turn McptixError raised by a service function into an error payload."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except McptixError as e:
            logger.debug("%s failed: %s", func.__name__, e)
            return e.to_dict()

    return wrapper


def format_ticket(ticket: Ticket, include_comments: bool = True) -> dict:
    return ticket.to_dict(include_comments=include_comments)


def _check_choice(name: str, value: Optional[str], choices: tuple) -> None:
    if value is not None and value not in choices:
        raise ValidationError(f"Invalid {name} '{value}'. Must be one of: {', '.join(choices)}")


def _require_ticket(queries: TicketQueries, ticket_id: str) -> Ticket:
    ticket = queries.get_ticket_by_id(ticket_id)
    if not ticket:
        raise TicketNotFoundError(ticket_id)
    return ticket


@returns_error_dict
def create_ticket(
    queries: TicketQueries,
    title: str,
    description: Optional[str] = None,
    priority: str = "medium",
    status: str = "backlog",
    agent_context: Optional[str] = None,
    complexity_metadata: Optional[dict] = None,
    comments: Optional[list[dict]] = None,
    order_value: Optional[float] = None,
) -> dict:
    if not title or not title.strip():
        raise ValidationError("Title is required")
    _check_choice("priority", priority, PRIORITIES)
    _check_choice("status", status, STATUSES)

    parsed_comments = []
    for data in comments or []:
        comment = Comment.from_dict(data)
        if not comment.content:
            raise ValidationError("Comment content is required")
        _check_choice("author", comment.author, AUTHORS)
        parsed_comments.append(comment)

    ticket = Ticket(
        title=title,
        description=description or "",
        priority=priority,
        status=status,
        agent_context=agent_context,
        order_value=order_value or 0,
        complexity_metadata=(
            ComplexityMetadata.from_dict(complexity_metadata)
            if complexity_metadata is not None
            else None
        ),
        comments=parsed_comments,
    )
    ticket_id = queries.create_ticket(ticket)

    return {
        "success": True,
        "ticket": format_ticket(_require_ticket(queries, ticket_id)),
    }


@returns_error_dict
def get_ticket(queries: TicketQueries, ticket_id: str) -> dict:
    return {"ticket": format_ticket(_require_ticket(queries, ticket_id))}


@returns_error_dict
def list_tickets(
    queries: TicketQueries,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "updated",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> dict:
    _check_choice("status", status, STATUSES)
    _check_choice("priority", priority, PRIORITIES)
    if limit < 1:
        raise ValidationError("limit must be at least 1")
    if offset < 0:
        raise ValidationError("offset must not be negative")

    filters = TicketFilter(status=status, priority=priority, search=search)
    tickets = queries.get_tickets(filters, sort=sort, order=order, limit=limit, offset=offset)
    total_count = queries.count_tickets(filters)
    return {
        "tickets": [format_ticket(t, include_comments=False) for t in tickets],
        "pagination": build_pagination(total_count, limit, offset),
    }


@returns_error_dict
def search_tickets(queries: TicketQueries, query: str, **kwargs) -> dict:
    """list_tickets with a mandatory, case-sensitive search term."""
    if not query:
        raise ValidationError("Search query is required")
    return list_tickets(queries, search=query, **kwargs)


@returns_error_dict
def update_ticket(
    queries: TicketQueries,
    ticket_id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    agent_context: Optional[str] = None,
    complexity_metadata: Optional[dict] = None,
) -> dict:
    """Update the given fields, leaving the rest as stored."""
    if title is not None and not title.strip():
        raise ValidationError("Title cannot be empty")
    _check_choice("priority", priority, PRIORITIES)
    _check_choice("status", status, STATUSES)

    ticket = _require_ticket(queries, ticket_id)
    if title is not None:
        ticket.title = title
    if description is not None:
        ticket.description = description
    if priority is not None:
        ticket.priority = priority
    if status is not None:
        ticket.status = status
    if agent_context is not None:
        ticket.agent_context = agent_context

    if complexity_metadata is not None:
        merged = ticket.complexity_metadata.to_dict() if ticket.complexity_metadata else {}
        merged.update(complexity_metadata)
        ticket.complexity_metadata = ComplexityMetadata.from_dict(merged)
    else:
        # Stored metadata is not rewritten unless new metrics arrive
        ticket.complexity_metadata = None

    if not queries.update_ticket(ticket):
        raise TicketNotFoundError(ticket_id)

    return {
        "success": True,
        "ticket": format_ticket(_require_ticket(queries, ticket_id)),
    }


@returns_error_dict
def delete_ticket(queries: TicketQueries, ticket_id: str) -> dict:
    if not queries.delete_ticket(ticket_id):
        raise TicketNotFoundError(ticket_id)
    return {"success": True, "id": ticket_id}


@returns_error_dict
def add_comment(
    queries: TicketQueries,
    ticket_id: str,
    content: str,
    author: str = "developer",
) -> dict:
    if not content:
        raise ValidationError("Comment content is required")
    _check_choice("author", author, AUTHORS)
    _require_ticket(queries, ticket_id)

    comment_id = queries.add_comment(ticket_id, Comment(content=content, author=author))
    return {"success": True, "ticket_id": ticket_id, "comment_id": comment_id}


@returns_error_dict
def edit_field(
    queries: TicketQueries,
    ticket_id: str,
    field: str,
    search: str,
    replace: str,
    use_regex: bool = False,
    case_sensitive: bool = True,
) -> dict:
    """Find/replace inside one text field of a ticket.

    In regex mode ``replace`` follows re.sub syntax (``\\1`` for groups);
    otherwise both strings are literal.
    """
    _check_choice("field", field, EDITABLE_FIELDS)
    if not search:
        raise ValidationError("Search text is required")

    ticket = _require_ticket(queries, ticket_id)
    original = getattr(ticket, field) or ""

    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        if use_regex:
            pattern = re.compile(search, flags)
            new_value, count = pattern.subn(replace, original)
        else:
            pattern = re.compile(re.escape(search), flags)
            new_value, count = pattern.subn(lambda _match: replace, original)
    except re.error as e:
        raise ValidationError(f"Invalid regular expression: {e}") from e

    if count == 0 or new_value == original:
        return {
            "success": True,
            "id": ticket_id,
            "field": field,
            "changed": False,
            "replacement_count": 0,
            "message": "No changes made - search text not found",
        }

    setattr(ticket, field, new_value)
    # A text edit leaves stored complexity as it is
    ticket.complexity_metadata = None
    queries.update_ticket(ticket)

    return {
        "success": True,
        "id": ticket_id,
        "field": field,
        "changed": True,
        "replacement_count": count,
        "message": "Field updated successfully",
    }


@returns_error_dict
def get_stats(queries: TicketQueries, group_by: str = "status") -> dict:
    _check_choice("group_by", group_by, STATS_GROUPS)
    with queries.db.connection() as conn:
        rows = conn.execute(
            f"SELECT {group_by} AS grp, COUNT(*) AS count FROM tickets GROUP BY {group_by}"
        ).fetchall()
    stats = {row["grp"]: row["count"] for row in rows}
    return {
        "group_by": group_by,
        "stats": stats,
        "total": sum(stats.values()),
    }


@returns_error_dict
def get_next_ticket(queries: TicketQueries, status: str = "up-next") -> dict:
    _check_choice("status", status, STATUSES)
    ticket = queries.get_next_ticket(status)
    if not ticket:
        raise TicketNotFoundError(message=f"No tickets found in status: {status}")
    return {"ticket": format_ticket(ticket)}


@returns_error_dict
def reorder_ticket(queries: TicketQueries, ticket_id: str, order_value: float) -> dict:
    if not queries.reorder_ticket(ticket_id, order_value):
        raise TicketNotFoundError(ticket_id)
    return {"success": True, "id": ticket_id, "order_value": order_value}


@returns_error_dict
def move_ticket(
    queries: TicketQueries,
    ticket_id: str,
    status: str,
    order_value: Optional[float] = None,
) -> dict:
    _check_choice("status", status, STATUSES)
    if not queries.move_ticket(ticket_id, status, order_value):
        raise TicketNotFoundError(ticket_id)
    ticket = _require_ticket(queries, ticket_id)
    return {
        "success": True,
        "id": ticket_id,
        "status": ticket.status,
        "order_value": ticket.order_value,
    }


def export_tickets(queries: TicketQueries) -> dict:
    return queries.export_to_json()
