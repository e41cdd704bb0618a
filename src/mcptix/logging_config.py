"""Logging setup for the mcptix CLI and MCP server.

Logs go to stderr: stdout carries the MCP stdio protocol.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "mcptix"


def setup_logging(level: str = "info") -> logging.Logger:
    """Attach a rich stderr handler to the ``mcptix`` logger.

    Safe to call more than once; later calls only change the level.

    Args:
        level: debug, info, warning or error
    """
    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        root.addHandler(handler)
        root.propagate = False

    # Quiet noisy libraries
    logging.getLogger("mcp").setLevel(logging.WARNING)
    return root
