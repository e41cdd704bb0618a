"""Exception hierarchy for mcptix.

Service and front-end layers map these onto error payloads by ``code``
instead of matching on message strings.
"""

from typing import Optional


class McptixError(Exception):
    """Base exception for all mcptix business errors."""

    code = "error"

    def to_dict(self) -> dict:
        return {"error": self.code, "message": str(self)}


class TicketNotFoundError(McptixError):
    """Ticket does not exist (or a status column has no tickets)."""

    code = "not_found"

    def __init__(self, ticket_id: Optional[str] = None, message: Optional[str] = None):
        self.ticket_id = ticket_id
        super().__init__(message or f"Ticket not found: {ticket_id}")


class ValidationError(McptixError):
    """Caller supplied a missing or invalid value."""

    code = "validation_error"


class ConfigError(McptixError):
    """Configuration file or environment holds an invalid value."""

    code = "config_error"


class MigrationError(McptixError):
    """A schema migration failed or cannot be rolled back."""

    code = "migration_error"

    def __init__(self, message: str, version: Optional[int] = None, name: Optional[str] = None):
        self.version = version
        self.name = name
        if version is not None:
            message = f"Migration v{version} ({name}): {message}"
        super().__init__(message)
