"""
Logging for the Testimonium toolkit.

Every module logs through a child of the ``testimonium_toolkit`` logger.
That package logger owns the only console handler, so relay, proof and
locator messages share one format and one level. The level comes from
TESTIMONIUM_LOG_LEVEL and the CLI can raise it with ``--verbose``.
"""

import logging
import os
from typing import Optional, Union

PACKAGE_LOGGER = "testimonium_toolkit"

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _package_logger() -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        logger.addHandler(handler)
        set_log_level(os.getenv("TESTIMONIUM_LOG_LEVEL", "INFO"))
    return logger


def set_log_level(level: Union[int, str]) -> None:
    """Set the level of every toolkit logger; unknown names mean INFO"""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a toolkit logger.

    Names outside the package (or no name) are nested under the package
    logger so they inherit its handler and level.
    """
    package_logger = _package_logger()
    if not name or name == PACKAGE_LOGGER:
        return package_logger
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
