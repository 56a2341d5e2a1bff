"""
Logging
=======
Handlers for the ``kerrlens`` logger namespace.

Library modules only call ``logging.getLogger(__name__)``; the command line
entry point installs handlers once through ``setup_logging``. Log records go
to stderr so that ``trace`` output on stdout stays machine readable.
"""
import logging
import sys
from typing import Optional

LOGGER_NAME = "kerrlens"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Route ``kerrlens`` records to stderr and, optionally, to ``log_file``.

    Calling it again replaces the previous handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("Logging to %s", log_file or "stderr")
    return logger
