"""Logging configuration for the ``amc`` command."""

import logging
import sys
from typing import TextIO

BASE_LOGGER = "allmycircuits"


def level_for(verbosity: int) -> int:
    """Map a ``-v``/``-q`` count to a logging level.

    Args:
        verbosity: Negative for quiet, 0 by default, 1 for ``-v``, 2+ for ``-vv``

    Returns:
        The logging level for the package logger
    """
    if verbosity < 0:
        return logging.ERROR
    if verbosity == 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def setup_logging(verbosity: int = 0, stream: TextIO | None = None) -> logging.Logger:
    """Configure the base ``allmycircuits`` logger once and return it.

    Records go to stderr so that stdout only ever carries the bundle.
    Calling this again only adjusts the level.
    """
    base = logging.getLogger(BASE_LOGGER)
    base.setLevel(level_for(verbosity))
    if base.handlers:
        return base

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    base.addHandler(handler)
    return base
