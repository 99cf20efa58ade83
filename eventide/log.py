"""Console logging setup."""

import logging
import os

import click

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LOG_ENV_VAR = "EVENTIDE_LOG"

# Verbosity 0 silences everything, including CRITICAL.
VERBOSITY_LEVELS = {
    0: logging.CRITICAL + 10,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
    4: logging.DEBUG,
    5: TRACE,
}


class ConsoleFormatter(logging.Formatter):
    """Bare messages for INFO, a level prefix for everything else.

    WARNING is prefixed in yellow, ERROR and CRITICAL in red.
    """

    COLORS = {
        logging.WARNING: "yellow",
        logging.ERROR: "red",
        logging.CRITICAL: "red",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno == logging.INFO:
            return message

        level = record.levelname
        color = self.COLORS.get(record.levelno)
        if color is not None:
            level = click.style(level, fg=color)
        return f"{level}: {message}"


def verbosity_level(verbosity: int) -> int:
    """Map a verbosity from 0 to 5 to a logging level.

    Raises:
        ValueError: If the verbosity is out of range.
    """
    try:
        return VERBOSITY_LEVELS[verbosity]
    except KeyError:
        raise ValueError(f"Unsupported verbosity level '{verbosity}'") from None


def parse_level(value: str) -> int:
    """Parse a level given either as a verbosity digit or a level name.

    Raises:
        ValueError: If the value is neither.
    """
    value = value.strip()
    if value.isdigit():
        return verbosity_level(int(value))

    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level '{value}'")
    return level


def setup_logging(verbosity: int = 3) -> int:
    """Configure root logging for the console.

    The EVENTIDE_LOG environment variable, when set, takes precedence over
    ``verbosity``.

    Args:
        verbosity: Verbosity from 0 (off) to 5 (trace).

    Returns:
        The logging level that was applied.
    """
    env_level = os.environ.get(LOG_ENV_VAR)
    level = parse_level(env_level) if env_level else verbosity_level(verbosity)

    handler = logging.StreamHandler()
    handler.setFormatter(ConsoleFormatter("%(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)
    return level


def level_name(level: int) -> str:
    """Lower-case name of the closest standard level at or above ``level``.

    Used to hand the applied level to uvicorn.
    """
    for threshold, name in (
        (TRACE, "trace"),
        (logging.DEBUG, "debug"),
        (logging.INFO, "info"),
        (logging.WARNING, "warning"),
        (logging.ERROR, "error"),
    ):
        if level <= threshold:
            return name
    return "critical"
