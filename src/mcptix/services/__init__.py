"""Shared service layer for CLI and MCP."""

from .tickets import (
    format_ticket,
    create_ticket,
    get_ticket,
    list_tickets,
    search_tickets,
    update_ticket,
    delete_ticket,
    add_comment,
    edit_field,
    get_stats,
    get_next_ticket,
    reorder_ticket,
    move_ticket,
    export_tickets,
)

__all__ = [
    "format_ticket",
    "create_ticket",
    "get_ticket",
    "list_tickets",
    "search_tickets",
    "update_ticket",
    "delete_ticket",
    "add_comment",
    "edit_field",
    "get_stats",
    "get_next_ticket",
    "reorder_ticket",
    "move_ticket",
    "export_tickets",
]
