"""
Package loggers.

Every module logs through get_logger(__name__), which stays silent until
an application calls configure_logging (main.py does so under --log).
Calibration iterations go out at DEBUG, non-convergence at INFO.
"""

import logging
from typing import Iterable, Optional

ROOT_LOGGER_NAME = "vanilla_lv"
_NULL_HANDLER = logging.NullHandler()


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Logger under the vanilla_lv hierarchy, silent by default.

    Parameters
    ----------
    name : dotted logger name, normally the calling module's __name__

    Returns
    -------
    logging.Logger with a NullHandler attached (once)
    """
    logger = logging.getLogger(name)
    if _NULL_HANDLER not in logger.handlers:
        logger.addHandler(_NULL_HANDLER)
    return logger


def configure_logging(level: int = logging.INFO,
                      handlers: Optional[Iterable[logging.Handler]] = None,
                      format_string: Optional[str] = None) -> logging.Logger:
    """
    Route package log records to real handlers.

    Parameters
    ----------
    level : level set on the vanilla_lv root logger
    handlers : handlers to attach (default: one StreamHandler on stderr)
    format_string : optional logging.Formatter pattern for those handlers

    Returns
    -------
    logging.Logger : the configured vanilla_lv logger
    """
    logger = get_logger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in handlers if handlers is not None else [logging.StreamHandler()]:
        if format_string is not None:
            handler.setFormatter(logging.Formatter(format_string))
        logger.addHandler(handler)
    return logger
