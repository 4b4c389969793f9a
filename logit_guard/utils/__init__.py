"""
Utility functions and helpers.

Example:
    ```python
    from logit_guard.utils import setup_logging

    setup_logging(level="DEBUG")  # every rule decision is logged
    ```
"""

import logging
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: Union[str, int] = "WARNING", console: Optional[Console] = None) -> logging.Logger:
    """
    Attach a Rich handler to the ``logit_guard`` logger.

    Calling it again replaces the handler instead of adding a second one.

    Args:
        level: Log level name or number
        console: Rich console to write to (default: stderr)

    Returns:
        logging.Logger: The package logger
    """
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger("logit_guard")
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


__all__ = ["setup_logging"]
