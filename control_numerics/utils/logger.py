"""Logging utilities for control_numerics.

Library modules fetch their logger with ``get_logger(__name__)``. The package
logger only carries a ``NullHandler``, so records propagate to whatever the
application configures. Call ``setup_logger`` to get a rich console handler
instead.
"""

import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "control_numerics"

console = Console(stderr=True)

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: str = "WARNING",
    use_rich: bool = True,
) -> logging.Logger:
    """Configure ``name`` with a single console handler.

    Meant to be called by applications and scripts; the library never calls
    it. The configured logger stops propagating to the root logger.

    Args:
        name: Logger name.
        level: Logging level name, e.g. ``"DEBUG"``.
        use_rich: Use a ``RichHandler`` instead of a plain stream handler.

    Returns:
        The configured logger. Calling again on a configured logger only
        updates its level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    if any(not isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        return logger

    if use_rich:
        handler: logging.Handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the logger ``name``, the package logger by default."""
    return logging.getLogger(name or PACKAGE_LOGGER)
