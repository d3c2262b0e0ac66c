"""
Logging setup for jj-manage.

Log records go to stderr through rich so they stay readable next to job
output on stdout. The level comes from JJ_MANAGE_LOG (e.g. `debug`),
defaulting to INFO.
"""

import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_ENV_VAR = "JJ_MANAGE_LOG"


def resolve_level(value: Optional[str]) -> int:
    """Map a level name to a logging level, falling back to INFO."""
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(verbose: bool = False) -> None:
    """Install the rich stderr handler on the root logger."""
    level = logging.DEBUG if verbose else resolve_level(os.environ.get(LOG_ENV_VAR))
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
