"""loguru setup for the engine's algorithmic components and the CLI.

Interactive terminals with LOG_FORMAT=console get colourised lines; anything
else (pipes, containers, CI) gets one JSON object per record on stdout.
"""

import sys
from typing import Optional

from loguru import logger

from citadel_engine.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | <level>{message}</level>"
)


def _wants_console(log_format: str) -> bool:
    return sys.stderr.isatty() and log_format.lower() == "console"


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    (Re)install the loguru sink.

    Args:
        level: Minimum level. Defaults to settings.log_level.
        log_format: "console" or "json". Defaults to settings.log_format.
    """
    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format

    logger.remove()
    if _wants_console(log_format):
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)
    else:
        logger.add(sys.stdout, format="{message}", level=level, serialize=True, diagnose=False)

    # Unbound records still need extra[component] for CONSOLE_FORMAT
    logger.configure(extra={"component": "citadel"})


def get_logger(component: str):
    """loguru logger bound to a component, e.g. get_logger("cli")."""
    return logger.bind(component=component)


configure_logging()

__all__ = ["logger", "get_logger", "configure_logging"]
