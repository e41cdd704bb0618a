"""Main CLI for mcptix."""

import sqlite3
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import CONFIG_DIR, CONFIG_FILE, create_config, get_config_summary, resolve_config
from .db import CURRENT_SCHEMA_VERSION, Database, get_available_migrations
from .errors import McptixError
from .export import EXPORT_FORMATS, render_export, write_export
from .logging_config import setup_logging
from .output import format_response, render_cli
from .services import (
    get_next_ticket as svc_get_next_ticket,
    get_stats as svc_get_stats,
    get_ticket as svc_get_ticket,
    list_tickets as svc_list_tickets,
)
from .tickets import TicketQueries

app = typer.Typer(
    name="mcptix",
    help="mcptix - kanban ticket tracking for AI-assisted development",
)
console = Console()


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def open_database(path: Optional[Path] = None, migrate: bool = True) -> Database:
    """Open the project database for ``path`` or exit with error."""
    try:
        config = resolve_config(path)
        setup_logging(config.log_level)
        return Database(config.get_db_path(), migrate=migrate)
    except (McptixError, sqlite3.Error) as e:
        _fail(str(e))


def _print_response(result: dict, output_format: str) -> None:
    if "error" in result:
        _fail(result.get("message", result["error"]))
    console.print(
        render_cli(format_response(result, output_format)),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


# ============================================================================
# Setup Commands
# ============================================================================


@app.command("init")
def init_project(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Directory to initialize"),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Database location"),
    log_level: str = typer.Option("info", "--log-level", help="debug|info|warning|error"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config"),
):
    """Create .mcptix/config.json and an up-to-date database."""
    target_path = Path(path) if path else Path.cwd()

    if not target_path.exists():
        _fail(f"Directory not found: {target_path}")

    config_path = target_path / CONFIG_DIR / CONFIG_FILE
    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {config_path}")
    else:
        try:
            config_path = create_config(target_path, db_path=db_path, log_level=log_level)
        except McptixError as e:
            _fail(str(e))
        console.print(f"[green]Created:[/green] {config_path}")

    try:
        config = resolve_config(target_path)
        setup_logging(config.log_level)
        db = Database(config.get_db_path(), clear_data=config.clear_data_on_init)
    except (McptixError, sqlite3.Error) as e:
        _fail(str(e))

    with db:
        console.print(f"[green]Database ready:[/green] {db.db_path} (schema v{db.get_version()})")


@app.command("context")
def show_context(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Path to check context for"),
):
    """Show the configuration that applies to a directory."""
    try:
        config = resolve_config(path)
    except McptixError as e:
        _fail(str(e))
    console.print(get_config_summary(config))


@app.command("mcp")
def run_mcp():
    """Run the MCP server over stdio."""
    from .mcp_server import main

    main()


@app.command("migrate")
def migrate(
    target: int = typer.Option(CURRENT_SCHEMA_VERSION, "--target", "-t", help="Schema version to migrate to"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project directory"),
    show: bool = typer.Option(False, "--list", help="List available migrations and exit"),
):
    """Apply pending migrations, or roll back to an older version."""
    if show:
        for migration in get_available_migrations():
            console.print(f"v{migration['version']}: {migration['name']}")
        return

    with open_database(path, migrate=False) as db:
        before = db.get_version()
        try:
            after = db.migrate(target)
        except (McptixError, sqlite3.Error) as e:
            _fail(str(e))

    if before == after:
        console.print(f"Schema already at version {after}")
    else:
        console.print(f"[green]Migrated:[/green] v{before} -> v{after}")


@app.command("export")
def export_board(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="File to write (default: stdout)"),
    output_format: str = typer.Option("json", "--format", "-f", help="Output format (json|yaml)"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project directory"),
):
    """Export every ticket grouped into the five status columns."""
    if output_format not in EXPORT_FORMATS:
        _fail(f"Unknown format '{output_format}'. Use one of: {', '.join(EXPORT_FORMATS)}")

    with open_database(path) as db:
        data = TicketQueries(db).export_to_json()

    if output:
        written = write_export(data, output, output_format)
        total = sum(len(column["tickets"]) for column in data["columns"])
        console.print(f"[green]Exported {total} tickets to[/green] {written}")
    else:
        typer.echo(render_export(data, output_format))


# ============================================================================
# Ticket Commands
# ============================================================================


@app.command("list")
def list_tickets(
    status: Optional[str] = typer.Option(None, "--status", "-s", help="Filter by status"),
    priority: Optional[str] = typer.Option(None, "--priority", help="Filter by priority"),
    search: Optional[str] = typer.Option(None, "--search", help="Case-sensitive text search"),
    sort: str = typer.Option("updated", "--sort", help="Column to sort by"),
    order: str = typer.Option("desc", "--order", help="asc|desc"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum results"),
    offset: int = typer.Option(0, "--offset", help="Skip first N results"),
    output_format: str = typer.Option("text", "--format", "-f", help="Output format (text|json|yaml)"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project directory"),
):
    """List tickets."""
    with open_database(path) as db:
        result = svc_list_tickets(
            TicketQueries(db),
            status=status,
            priority=priority,
            search=search,
            sort=sort,
            order=order,
            limit=limit,
            offset=offset,
        )

    if output_format != "text" or "error" in result:
        _print_response(result, output_format)
        return

    table = Table(title="Tickets")
    table.add_column("ID", style="dim")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("CIE", justify="right")
    table.add_column("Title")
    for ticket in result["tickets"]:
        summary = _summary_row(ticket)
        table.add_row(
            summary["id"],
            summary["status"],
            summary["priority"],
            str(summary["cie_score"]),
            summary["title"],
        )
    console.print(table)
    pagination = result["pagination"]
    console.print(f"[dim]{len(result['tickets'])} of {pagination['total_count']}[/dim]")


def _summary_row(ticket: dict) -> dict:
    complexity = ticket.get("complexity_metadata") or {}
    return {
        "id": ticket["id"],
        "title": ticket["title"],
        "status": ticket["status"],
        "priority": ticket["priority"],
        "cie_score": complexity.get("cie_score", 0),
    }


@app.command("show")
def show_ticket(
    ticket_id: str = typer.Argument(..., help="Ticket ID"),
    output_format: str = typer.Option("json", "--format", "-f", help="Output format (json|yaml|text)"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project directory"),
):
    """Show a ticket with its comments and complexity."""
    with open_database(path) as db:
        result = svc_get_ticket(TicketQueries(db), ticket_id)
    _print_response(result, output_format)


@app.command("next")
def next_ticket(
    status: str = typer.Argument("up-next", help="Column to take the top ticket from"),
    output_format: str = typer.Option("json", "--format", "-f", help="Output format (json|yaml|text)"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project directory"),
):
    """Show the next ticket to work on in a column."""
    with open_database(path) as db:
        result = svc_get_next_ticket(TicketQueries(db), status)
    _print_response(result, output_format)


@app.command("stats")
def stats(
    group_by: str = typer.Option("status", "--group-by", "-g", help="status|priority"),
    output_format: str = typer.Option("json", "--format", "-f", help="Output format (json|yaml|text)"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project directory"),
):
    """Count tickets by status or priority."""
    with open_database(path) as db:
        result = svc_get_stats(TicketQueries(db), group_by)
    _print_response(result, output_format)


if __name__ == "__main__":
    app()
