"""Logging setup for questionkit.

Library modules only ever do::

    logger = logging.getLogger(__name__)

Handlers and levels are configured once, by the entrypoint (CLI or server),
through ``configure_logging``.
"""

from __future__ import annotations

import logging
import sys

DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: int | str = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
    stream=sys.stderr,
) -> None:
    """Install a single root handler and set the level.

    Safe to call multiple times; a second call only adjusts the level.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
