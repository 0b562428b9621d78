"""Logging setup for the CLI."""

import logging

from rich.logging import RichHandler

from .ansi import console

PACKAGE_LOGGER = "search_chat"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Route the package's log records through rich.

    Only warnings and errors are shown unless *verbose* is set.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_path=verbose, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.propagate = False
    return logger
