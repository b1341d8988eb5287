"""
Logging setup for crx_reconciler.

Modules log through ``logging.getLogger(__name__)``. Call ``setup_logging()``
once at service startup to send the package's records to the console.
"""

import logging
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROOT_LOGGER = "crx_reconciler"

_configured = False


def setup_logging(level: Union[int, str] = logging.INFO, stream: Optional[object] = None) -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Safe to call more than once: later calls only adjust the level.
    """
    global _configured

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)

    if not _configured:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        _configured = True

    return logger
