"""
Tycoon Q&A - Logging
=====================
Logger factory shared by every module.

All ``tycoon.*`` loggers hang off one package logger that owns the only
stdout handler, so each line is printed exactly once no matter how many
modules import ``get_logger``.  Loggers outside the package (scripts run
as ``__main__``) get their own handler.

Level comes from ``settings.ENV``: DEBUG in ``dev``, WARNING in ``prod``.
HTTP client chatter (``httpx``/``httpcore``) is held at WARNING.

Usage:
    from tycoon.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[RAG] Received question: '%s'", question)
"""

import logging
import sys

from tycoon.config.settings import settings

PACKAGE_LOGGER = "tycoon"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ENV_LEVELS = {"dev": logging.DEBUG, "prod": logging.WARNING}
_QUIET_LOGGERS = ("httpx", "httpcore")


def _attach_handler(logger: logging.Logger, level: int) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _configure_package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        _attach_handler(root, _ENV_LEVELS.get(settings.ENV, logging.INFO))
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    return root


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return the logger for *name*.

    Args:
        name:  Usually ``__name__`` of the calling module.
        level: Optional override; otherwise inherited from the package logger.
    """
    package_logger = _configure_package_logger()
    logger = logging.getLogger(name)

    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + ".") and not logger.handlers:
        _attach_handler(logger, package_logger.level)

    if level is not None:
        logger.setLevel(level)
    return logger
