"""Logging helpers shared by the hourlysofa modules.

Every module asks for a namespaced logger through :func:`get_logger` so that a
single call to :func:`setup_logging` controls the whole package.
"""

from __future__ import annotations

import logging

ROOT_LOGGER_NAME = 'hourlysofa'
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Return the ``hourlysofa.<name>`` logger."""
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(level: str | int = "INFO", *, force: bool = False) -> logging.Logger:
    """Attach a stream handler to the package logger.

    Parameters
    ----------
    level : str or int
        Logging level, e.g. ``"DEBUG"`` or ``logging.INFO``. Case-insensitive.
    force : bool, default False
        If True, drop handlers installed by an earlier call before adding a
        new one. Without it, repeated calls only update the level.

    Returns
    -------
    logging.Logger
        The configured ``hourlysofa`` logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    if logger.handlers and not force:
        return logger

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
