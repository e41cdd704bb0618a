"""Ticket data models for mcptix."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional

from .complexity import ComplexityMetrics, METRIC_FIELDS, metric_values


TicketStatus = Literal["backlog", "up-next", "in-progress", "in-review", "completed"]
TicketPriority = Literal["low", "medium", "high"]
CommentAuthor = Literal["developer", "agent"]

# Canonical column order; also the order of export buckets.
STATUSES: tuple[str, ...] = ("backlog", "up-next", "in-progress", "in-review", "completed")
STATUS_NAMES = {
    "backlog": "Backlog",
    "up-next": "Up Next",
    "in-progress": "In Progress",
    "in-review": "In Review",
    "completed": "Completed",
}
PRIORITIES: tuple[str, ...] = ("low", "medium", "high")
AUTHORS: tuple[str, ...] = ("developer", "agent")

# Fields edit_field may rewrite
EDITABLE_FIELDS: tuple[str, ...] = ("title", "description", "agent_context")


@dataclass
class ComplexityMetadata(ComplexityMetrics):
    """Complexity metrics owned by a ticket, plus the derived CIE score.

    ``cie_score`` of None means "compute it"; a number supplied on ticket
    creation is stored as-is.
    """

    ticket_id: Optional[str] = None
    cie_score: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ComplexityMetadata":
        data = data or {}
        return cls(
            ticket_id=data.get("ticket_id"),
            cie_score=data.get("cie_score"),
            **metric_values(data),
        )

    @classmethod
    def from_row(cls, ticket_id: str, row) -> "ComplexityMetadata":
        """Build from a complexity row, or an all-zero record if row is None."""
        if row is None:
            return cls(ticket_id=ticket_id, cie_score=0)
        return cls(
            ticket_id=ticket_id,
            cie_score=row["cie_score"] or 0,
            **{name: row[name] or 0 for name in METRIC_FIELDS},
        )

    def to_dict(self) -> dict:
        d = {"ticket_id": self.ticket_id}
        d.update(super().to_dict())
        d["cie_score"] = self.cie_score if self.cie_score is not None else 0
        return d


@dataclass
class Comment:
    """A comment on a ticket. Comments are never edited."""

    content: str
    id: Optional[str] = None
    ticket_id: Optional[str] = None
    author: CommentAuthor = "developer"
    timestamp: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "content": self.content,
            "author": self.author,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Comment":
        return cls(
            id=d.get("id"),
            ticket_id=d.get("ticket_id"),
            content=d.get("content") or "",
            author=d.get("author") or "developer",
            timestamp=d.get("timestamp"),
        )

    @classmethod
    def from_row(cls, row) -> "Comment":
        return cls(
            id=row["id"],
            ticket_id=row["ticket_id"],
            content=row["content"],
            author=row["author"],
            timestamp=row["timestamp"],
        )


@dataclass
class Ticket:
    """A ticket in one of the five status columns."""

    title: str
    id: Optional[str] = None
    description: str = ""
    priority: TicketPriority = "medium"
    status: TicketStatus = "backlog"
    created: Optional[str] = None
    updated: Optional[str] = None
    agent_context: Optional[str] = None
    order_value: float = 0

    complexity_metadata: Optional[ComplexityMetadata] = None
    comments: list[Comment] = field(default_factory=list)

    def to_dict(self, include_comments: bool = True) -> dict:
        d = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "created": self.created,
            "updated": self.updated,
            "agent_context": self.agent_context,
            "order_value": self.order_value,
            "complexity_metadata": (
                self.complexity_metadata.to_dict() if self.complexity_metadata else None
            ),
        }
        if include_comments:
            d["comments"] = [c.to_dict() for c in self.comments]
        return d

    @classmethod
    def from_row(cls, row) -> "Ticket":
        """Convert a tickets row to a Ticket (without complexity or comments)."""
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            priority=row["priority"],
            status=row["status"],
            created=row["created"],
            updated=row["updated"],
            agent_context=row["agent_context"],
            order_value=row["order_value"] if row["order_value"] is not None else 0,
        )


@dataclass
class TicketFilter:
    """Conjunctive filters for ticket listings."""

    status: Optional[str] = None
    priority: Optional[str] = None
    search: Optional[str] = None


def now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
