"""Logging setup for the mactl CLI.

Diagnostics go through the standard logging module and are written to stderr with
click, so they follow whatever stream click is currently bound to.
"""

import logging

import click

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

LEVEL_COLORS = {
    logging.DEBUG: "bright_black",
    logging.INFO: "cyan",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class ClickEchoHandler(logging.Handler):
    """Logging handler that echoes records to stderr through click."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            click.echo(click.style(message, fg=LEVEL_COLORS.get(record.levelno)), err=True)
        except Exception:
            self.handleError(record)


def level_for_verbosity(verbosity: int) -> int:
    """Map the number of -v flags to a logging level.

    Args:
        verbosity: How many times -v was given.

    Returns:
        int: WARNING by default, INFO for -v, DEBUG for -vv and above.
    """
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(verbosity: int = 0) -> None:
    """Install the stderr handler on the mactl logger.

    Repeated calls replace the handler instead of stacking a new one.
    """
    logger = logging.getLogger("mactl")
    for handler in list(logger.handlers):
        if isinstance(handler, ClickEchoHandler):
            logger.removeHandler(handler)

    handler = ClickEchoHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level_for_verbosity(verbosity))
