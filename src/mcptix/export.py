"""Board snapshot export.

The snapshot groups every ticket into the five status columns:

    {"columns": [{"id": "backlog", "name": "Backlog", "tickets": [...]}, ...]}

Tickets keep the order they were fetched in (most recently updated first).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Union

import yaml

from .models import STATUS_NAMES, STATUSES

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "yaml")


def build_export(queries) -> dict:
    """Build the column snapshot from a TicketQueries instance."""
    columns = {status: [] for status in STATUSES}
    for ticket in queries.get_all_tickets_for_export():
        bucket = columns.get(ticket.status)
        if bucket is None:
            logger.warning("Ticket %s has unknown status %r; not exported", ticket.id, ticket.status)
            continue
        bucket.append(ticket.to_dict())

    return {
        "columns": [
            {"id": status, "name": STATUS_NAMES[status], "tickets": columns[status]}
            for status in STATUSES
        ]
    }


def render_export(data: dict, fmt: str = "json") -> str:
    if fmt == "json":
        return json.dumps(data, indent=2)
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unknown export format: {fmt}")


def write_export(data: dict, path: Union[Path, str], fmt: str = "json") -> Path:
    """Write an export snapshot to ``path``, creating parent directories.

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_export(data, fmt), encoding="utf-8")
    logger.info("Exported tickets to %s", path)
    return path
