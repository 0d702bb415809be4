"""Logging setup for applications embedding the engine."""

from __future__ import annotations

import logging


def setup_logging(verbosity: int = 0) -> None:
    """Configure root logging: 0 = warnings, 1 = info, 2+ = debug."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(name)s: %(message)s")
