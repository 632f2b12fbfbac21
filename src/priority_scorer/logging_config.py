"""
Logging utilities for the priority scorer.

Library modules only ever call get_logger(); handlers are attached once by
the CLI (or an embedding application) through setup_logging().
"""

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


# Custom theme for log levels
_LOG_THEME = Theme({
    "logging.level.debug": "dim cyan",
    "logging.level.info": "green",
    "logging.level.warning": "yellow",
    "logging.level.error": "bold red",
    "log.time": "dim",
    "log.path": "dim",
})

# Log output goes to stderr so stdout stays clean for --json-output
_console = Console(theme=_LOG_THEME, stderr=True)

ROOT_LOGGER_NAME = "priority_scorer"

_loggers: dict[str, logging.Logger] = {}


def setup_logging(
    level: str = "WARNING",
    log_format: Optional[str] = None,
    dev_mode: bool = False,
    show_path: bool = False,
) -> None:
    """
    Configure the 'priority_scorer' logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Format string for the plain handler
        dev_mode: Use a rich console handler instead of a plain stream handler
        show_path: Show the emitting file in rich output
    """
    if log_format is None:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    level_value = getattr(logging, level.upper())

    if dev_mode:
        handler: logging.Handler = RichHandler(
            console=_console,
            level=level_value,
            show_path=show_path,
            rich_tracebacks=True,
            markup=False,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(log_format))
    handler.setLevel(level_value)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level_value)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for one component of the scorer.

    Args:
        name: Component name (e.g. 'config', 'engine'); prefixed with
              'priority_scorer.' automatically.
    """
    full_name = f"{ROOT_LOGGER_NAME}.{name}" if name else ROOT_LOGGER_NAME

    if full_name not in _loggers:
        logger = logging.getLogger(full_name)
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        _loggers[full_name] = logger

    return _loggers[full_name]


_root_logger = logging.getLogger(ROOT_LOGGER_NAME)
_root_logger.addHandler(logging.NullHandler())
