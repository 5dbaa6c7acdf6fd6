"""
Logging setup for the command line.

Console output goes through a RichHandler, full logs (including the
DEBUG-level reconciliation audit trail) go to a file.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: Optional[Console] = None,
) -> None:
    """
    Install console and file handlers on the root logger.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file, always written at DEBUG
        console: Rich console shared with the CLI output
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Re-running inside one process (tests, CliRunner) must not stack handlers
    for handler in list(root.handlers):
        if getattr(handler, "_skillforge", False):
            root.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_time=True,
        show_path=False,
    )
    rich_handler.setLevel(numeric_level)
    rich_handler._skillforge = True
    root.addHandler(rich_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler._skillforge = True
        root.addHandler(file_handler)


__all__ = ["configure_logging", "LOG_FORMAT"]
