"""MCP Server for mcptix - kanban ticket tracking for AI assistants.

Exposes the ticket board over the Model Context Protocol (stdio transport).
Every tool accepts ``path`` (directory used to find .mcptix/config.json) and
``format`` (json, yaml or text). Resources (``tickets://all``,
``tickets://status/{status}``, ``tickets://id/{id}``) read the project that
contains the working directory.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .config import resolve_config
from .db import Database
from .errors import TicketNotFoundError, ValidationError
from .logging_config import setup_logging
from .models import STATUSES, TicketFilter
from .output import format_response
from .services import (
    add_comment as svc_add_comment,
    create_ticket as svc_create_ticket,
    delete_ticket as svc_delete_ticket,
    edit_field as svc_edit_field,
    export_tickets as svc_export_tickets,
    get_next_ticket as svc_get_next_ticket,
    get_stats as svc_get_stats,
    get_ticket as svc_get_ticket,
    list_tickets as svc_list_tickets,
    move_ticket as svc_move_ticket,
    reorder_ticket as svc_reorder_ticket,
    search_tickets as svc_search_tickets,
    update_ticket as svc_update_ticket,
)
from .tickets import TicketQueries

logger = logging.getLogger(__name__)

# Create the MCP server
mcp = FastMCP(
    "mcptix",
    instructions="""mcptix - Kanban tickets for AI-assisted development

## Board
Tickets live in five columns: backlog -> up-next -> in-progress -> in-review -> completed.
Within a column, higher order_value sits nearer the top.

## Workflow
1. `get_next_ticket` - take the top ticket from up-next
2. `move_ticket(id, "in-progress")` - claim it
3. `edit_field` - targeted edits to title, description or agent_context
4. `add_comment` - record progress or questions
5. `move_ticket(id, "in-review")` when done

## Complexity
Pass complexity_metadata (files_touched, loc_added, ...) when creating or
updating a ticket; the CIE score (0-100) is computed from it.
""",
)

# One Database per resolved database file for the life of the server
_databases: dict[Path, Database] = {}


def _get_db_for_path(path: Optional[str] = None) -> Database:
    """Get the Database for the project containing ``path`` (default: cwd)."""
    config = resolve_config(Path(path) if path else None)
    db_path = config.get_db_path()

    db = _databases.get(db_path)
    if db is None:
        db = Database(db_path, clear_data=config.clear_data_on_init)
        _databases[db_path] = db
        logger.info("Using database %s (%s config)", db_path, config.config_source)
    return db


def _get_queries(path: Optional[str] = None) -> TicketQueries:
    return TicketQueries(_get_db_for_path(path))


def _render_ticket_text(payload: dict) -> str:
    if "error" in payload:
        return f"Error ({payload['error']}): {payload.get('message')}"
    ticket = payload.get("ticket", payload)
    lines = [
        f"{ticket.get('title')} [{ticket.get('id')}]",
        f"  status: {ticket.get('status')}  priority: {ticket.get('priority')}",
    ]
    complexity = ticket.get("complexity_metadata") or {}
    lines.append(f"  cie_score: {complexity.get('cie_score', 0)}")
    if ticket.get("description"):
        lines.append("")
        lines.append(ticket["description"])
    for comment in ticket.get("comments") or []:
        lines.append(f"  - {comment['author']} @ {comment['timestamp']}: {comment['content']}")
    return "\n".join(lines)


def _render_list_text(payload: dict) -> str:
    if "error" in payload:
        return f"Error ({payload['error']}): {payload.get('message')}"
    lines = []
    for ticket in payload.get("tickets", []):
        lines.append(f"{ticket['id']}  {ticket['status']:<12} {ticket['priority']:<7} {ticket['title']}")
    pagination = payload.get("pagination") or {}
    lines.append(f"({len(payload.get('tickets', []))} of {pagination.get('total_count', 0)})")
    return "\n".join(lines)


# ============================================================================
# Ticket Tools
# ============================================================================


@mcp.tool()
def list_tickets(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    sort: str = "updated",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """List tickets with optional filtering, sorting and pagination.

    Args:
        status: backlog, up-next, in-progress, in-review or completed
        priority: low, medium or high
        search: Case-sensitive text to find in title or description
        sort: Column to sort by (e.g. updated, created, order_value, title)
        order: asc or desc
        limit: Maximum results (default 20)
        offset: Skip first N results
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    result = svc_list_tickets(
        queries,
        status=status,
        priority=priority,
        search=search,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )
    return format_response(result, format, _render_list_text)


@mcp.tool()
def get_ticket(
    id: str,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Get a ticket with its comments and complexity metadata.

    Args:
        id: Ticket ID
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_get_ticket(queries, id), format, _render_ticket_text)


@mcp.tool()
def create_ticket(
    title: str,
    description: Optional[str] = None,
    priority: str = "medium",
    status: str = "backlog",
    agent_context: Optional[str] = None,
    complexity_metadata: Optional[dict] = None,
    comments: Optional[list[dict]] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Create a ticket.

    Args:
        title: Ticket title
        description: Optional description
        priority: low, medium or high (default medium)
        status: Initial column (default backlog)
        agent_context: Free-form notes for the agent working the ticket
        complexity_metadata: Raw metrics; an explicit cie_score is stored as given
        comments: Initial comments as {"content", "author"} objects
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    result = svc_create_ticket(
        queries,
        title=title,
        description=description,
        priority=priority,
        status=status,
        agent_context=agent_context,
        complexity_metadata=complexity_metadata,
        comments=comments,
    )
    return format_response(result, format, _render_ticket_text)


@mcp.tool()
def update_ticket(
    id: str,
    title: Optional[str] = None,
    description: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    agent_context: Optional[str] = None,
    complexity_metadata: Optional[dict] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Update a ticket. Omitted fields keep their values.

    Prefer edit_field for targeted text changes.

    Args:
        id: Ticket ID
        title: New title
        description: New description
        priority: low, medium or high
        status: New column (does not change order_value; see move_ticket)
        agent_context: New agent context
        complexity_metadata: Metrics to merge; the CIE score is recomputed
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    result = svc_update_ticket(
        queries,
        id,
        title=title,
        description=description,
        priority=priority,
        status=status,
        agent_context=agent_context,
        complexity_metadata=complexity_metadata,
    )
    return format_response(result, format, _render_ticket_text)


@mcp.tool()
def delete_ticket(
    id: str,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Delete a ticket with its comments and complexity metadata.

    Args:
        id: Ticket ID
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_delete_ticket(queries, id), format)


@mcp.tool()
def add_comment(
    ticket_id: str,
    content: str,
    author: str = "agent",
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Add a comment to a ticket.

    Args:
        ticket_id: Ticket ID
        content: Comment text (markdown)
        author: developer or agent (default agent)
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_add_comment(queries, ticket_id, content, author=author), format)


@mcp.tool()
def search_tickets(
    query: str,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    sort: str = "updated",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Search ticket titles and descriptions (case-sensitive).

    Args:
        query: Text to search for
        status: Optional status filter
        priority: Optional priority filter
        sort: Column to sort by
        order: asc or desc
        limit: Maximum results (default 20)
        offset: Skip first N results
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    result = svc_search_tickets(
        queries,
        query,
        status=status,
        priority=priority,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )
    return format_response(result, format, _render_list_text)


@mcp.tool()
def edit_field(
    id: str,
    field: str,
    search: str,
    replace: str,
    use_regex: bool = False,
    case_sensitive: bool = True,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Find and replace text inside one ticket field.

    PREFERRED over update_ticket for partial edits: only the matched text
    needs to be sent.

    Args:
        id: Ticket ID
        field: title, description or agent_context
        search: Text to find (a regular expression when use_regex is true)
        replace: Replacement text (\\1 refers to regex groups)
        use_regex: Treat search as a regular expression
        case_sensitive: Match case (default true)
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    result = svc_edit_field(
        queries,
        id,
        field,
        search,
        replace,
        use_regex=use_regex,
        case_sensitive=case_sensitive,
    )
    return format_response(result, format)


@mcp.tool()
def get_stats(
    group_by: str = "status",
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Count tickets grouped by status or priority.

    Args:
        group_by: status or priority (default status)
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_get_stats(queries, group_by), format)


@mcp.tool()
def get_next_ticket(
    status: str = "up-next",
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Get the top ticket of a column (highest order_value, then most recently updated).

    Args:
        status: Column to take from (default up-next)
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_get_next_ticket(queries, status), format, _render_ticket_text)


@mcp.tool()
def reorder_ticket(
    id: str,
    order_value: float,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Set a ticket's position within its column (higher is nearer the top).

    Args:
        id: Ticket ID
        order_value: New order value
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_reorder_ticket(queries, id, order_value), format)


@mcp.tool()
def move_ticket(
    id: str,
    status: str,
    order_value: Optional[float] = None,
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Move a ticket to another column.

    Without order_value the ticket is placed at the bottom of the column.

    Args:
        id: Ticket ID
        status: Destination column
        order_value: Optional position in the destination column
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_move_ticket(queries, id, status, order_value), format)


@mcp.tool()
def export_tickets(
    path: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Export the whole board grouped into its five columns.

    Args:
        path: Directory to get context from (defaults to current directory)
        format: json, yaml or text
    """
    try:
        queries = _get_queries(path)
    except Exception as e:
        return format_response({"error": "database_error", "message": str(e)}, format)

    return format_response(svc_export_tickets(queries), format)


# ============================================================================
# Resources
# ============================================================================

# Resources return the first page of a listing with default sorting
RESOURCE_LIMIT = 100
RESOURCE_SORT = "updated"
RESOURCE_ORDER = "desc"


def _read_listing(uri: str, status: Optional[str] = None) -> str:
    tickets = _get_queries().get_tickets(
        TicketFilter(status=status),
        sort=RESOURCE_SORT,
        order=RESOURCE_ORDER,
        limit=RESOURCE_LIMIT,
    )
    metadata = {"resource": uri}
    if status is not None:
        metadata["status"] = status
    metadata.update(
        total=len(tickets),
        limit=RESOURCE_LIMIT,
        offset=0,
        sort=RESOURCE_SORT,
        order=RESOURCE_ORDER,
    )
    return json.dumps(
        {"metadata": metadata, "tickets": [t.to_dict(include_comments=False) for t in tickets]},
        indent=2,
    )


@mcp.resource(
    "tickets://all",
    name="All Tickets",
    description="Most recently updated tickets across every column",
    mime_type="application/json",
)
def all_tickets_resource() -> str:
    return _read_listing("tickets://all")


@mcp.resource(
    "tickets://status/{status}",
    name="Tickets by Status",
    description="Tickets in one column (backlog, up-next, in-progress, in-review, completed)",
    mime_type="application/json",
)
def tickets_by_status_resource(status: str) -> str:
    if status not in STATUSES:
        raise ValidationError(f"Unknown status: {status}")
    return _read_listing(f"tickets://status/{status}", status)


@mcp.resource(
    "tickets://id/{id}",
    name="Ticket by ID",
    description="One ticket with its comments and complexity metadata",
    mime_type="application/json",
)
def ticket_by_id_resource(id: str) -> str:
    ticket = _get_queries().get_ticket_by_id(id)
    if ticket is None:
        raise TicketNotFoundError(id)
    return json.dumps(
        {"metadata": {"resource": f"tickets://id/{id}", "id": id}, "ticket": ticket.to_dict()},
        indent=2,
    )


def main():
    """Run the MCP server."""
    config = resolve_config()
    setup_logging(config.log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
