"""
Logging setup for the tcpsocket package.

Library modules only ever do ``logging.getLogger(__name__)``; the process
that runs a server decides where the records go by calling
setup_logging() once at startup.

    logging.getLogger("tcpsocket")               # everything
    logging.getLogger("tcpsocket.core.endpoint") # just the event loop
"""

import logging
import sys
from typing import Optional, TextIO


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the ``tcpsocket`` logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...). Unknown names fall
               back to INFO.
        stream: Where records are written. Defaults to stderr.

    Returns:
        The configured package logger.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    package_logger = logging.getLogger("tcpsocket")
    # Calling this twice must not duplicate every line
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(numeric)
    package_logger.propagate = False
    return package_logger
