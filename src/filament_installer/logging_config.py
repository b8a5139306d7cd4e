from __future__ import annotations

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    verbose: bool = False,
    rich_output: bool = True,
    logger_name: Optional[str] = None,
) -> logging.Logger:
    """
    Configure process-wide logging and return a scoped logger.

    Records always go to stderr so stdout stays reserved for installer output
    (and for the single JSON document in structured mode).
    """
    level = logging.DEBUG if verbose else logging.WARNING
    if rich_output:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
        )
        log_format = "%(message)s"
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_format = LOG_FORMAT
    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=DATE_FORMAT,
        handlers=[handler],
        force=True,
    )
    logger = logging.getLogger(logger_name or "filament_installer")
    logger.debug("Logging configured with level %s", logging.getLevelName(level))
    return logger
