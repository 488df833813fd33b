"""Logging setup shared by the CLI and library modules."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int = 0, console: Console | None = None) -> None:
    """Send ``repo_backup`` log records to a rich handler.

    ``verbosity`` is the number of ``-v`` flags. ``REPO_BACKUP_LOG`` (for
    example ``debug``) overrides it.
    """
    level = _LEVELS.get(verbosity, logging.DEBUG)
    override = os.environ.get("REPO_BACKUP_LOG")
    if override:
        level = logging.getLevelName(override.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level in REPO_BACKUP_LOG: {override}")

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbosity > 1,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("repo_backup")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
