"""Loguru setup for the console and the code generator.

Importing the package leaves loguru alone. The entry points call `configure_logger` once, with the level
resolved by `resolve_log_level` from `--verbose`, `--log-level` and HORDE_MODEL_REFERENCE_CONSOLE_LOG_LEVEL.
"""

import sys
from typing import Literal

from loguru import logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]

CONSOLE_FORMAT = "<level>{level: <8}</level> | <level>{message}</level>"
"""Used for INFO and above, where call sites are noise on a terminal."""

DETAILED_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
"""Used for DEBUG and TRACE."""

_DETAILED_LEVELS = {"TRACE", "DEBUG"}


def resolve_log_level(*, verbose: bool, explicit: str | None, configured: str) -> str:
    """Pick the effective level for a command line run.

    `--verbose` wins over `--log-level`, which wins over the configured setting.
    """
    if verbose:
        return "DEBUG"
    return (explicit or configured).upper()


def configure_logger(
    level: LogLevel | str = "WARNING",
    *,
    format_string: str | None = None,
    colorize: bool | None = None,
) -> None:
    """Send console logs to stderr at `level`.

    Args:
        level: The minimum log level to display.
        format_string: Loguru format; defaults to `DETAILED_FORMAT` for DEBUG/TRACE and `CONSOLE_FORMAT` otherwise.
        colorize: Force colours on or off. `None` lets loguru decide from the terminal.

    Example:
        ```python
        from horde_model_reference_console.logging_config import configure_logger

        configure_logger("INFO", format_string="{time} - {message}", colorize=False)
        ```
    """
    logger.remove()

    if format_string is None:
        format_string = DETAILED_FORMAT if level.upper() in _DETAILED_LEVELS else CONSOLE_FORMAT

    logger.add(sys.stderr, level=level.upper(), format=format_string, colorize=colorize)


def disable_logging() -> None:
    """Remove every loguru handler, silencing the console entirely."""
    logger.remove()


def enable_debug_logging() -> None:
    configure_logger("DEBUG")


__all__ = [
    "CONSOLE_FORMAT",
    "DETAILED_FORMAT",
    "LogLevel",
    "configure_logger",
    "disable_logging",
    "enable_debug_logging",
    "resolve_log_level",
]
