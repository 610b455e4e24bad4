"""Logging setup.

The screen belongs to the renderer, so log records go to a file.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_handler: Optional[logging.Handler] = None


def configure_logging(
    level: Union[int, str] = logging.INFO,
    path: Optional[str] = None,
) -> Optional[logging.Handler]:
    """Send ``ferro`` log records to *path*.

    Without a path nothing is attached and ``None`` is returned.  Calling
    again replaces the previously installed handler.
    """
    global _handler
    logger = logging.getLogger("ferro")
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler.close()
        _handler = None

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    if not path:
        return None
    _handler = logging.FileHandler(path, encoding="utf-8")
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_handler)
    return _handler


def configure_from_env() -> Optional[logging.Handler]:
    """Apply ``FERRO_LOG_FILE`` / ``FERRO_LOG_LEVEL`` when set."""
    path = os.environ.get("FERRO_LOG_FILE")
    if not path:
        return None
    return configure_logging(os.environ.get("FERRO_LOG_LEVEL", "info"), path)
