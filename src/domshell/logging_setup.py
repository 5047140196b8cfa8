"""
Console logging setup using Rich.

Created: 2026-03-02
Changes:
  - 2026-03-08: Quieten uvicorn access logs and the MCP SDK.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "asyncio",
    "websockets",
    "uvicorn.access",
    "mcp",
)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with Rich on stderr.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    # stdout stays clean for command output; logs go to stderr
    console = Console(stderr=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                show_time=True,
                show_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                markup=False,
            )
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
