"""
Logging configuration
"""
import logging

from storefront.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = None) -> logging.Logger:
    """
    Configure the package logger.

    All modules log through ``logging.getLogger(__name__)`` so they inherit
    the handler installed here. Calling this more than once is harmless.
    """
    logger = logging.getLogger("storefront")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    # Avoid duplicate handlers if setup_logging() is called multiple times
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger
