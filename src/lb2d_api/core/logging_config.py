"""Logging setup for the API process."""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stream handler to the package logger.

    Calling this more than once only updates the level.
    """
    package_logger = logging.getLogger("lb2d_api")
    package_logger.setLevel(level.upper())
    if any(getattr(h, "_lb2d_handler", False) for h in package_logger.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._lb2d_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
