"""
Logging setup for the ``sharegraph`` logger tree.
"""

import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from ...config.settings import get_settings

PACKAGE_LOGGER = 'sharegraph'
LOG_FORMAT = '%(asctime)s %(levelname)-7s [%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%dT%H:%M:%S'

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ('redis', 'asyncio')


def _handlers(log_file: Optional[str]) -> list:
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding='utf-8'))
    return handlers


@lru_cache()
def setup_logging(log_level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger once per argument set.

    The root logger is left alone so that a host application keeps control
    of its own handlers.

    Args:
        log_level: Level name, defaults to ``SHAREGRAPH_LOG_LEVEL``
        log_file: Extra file destination, defaults to ``SHAREGRAPH_LOG_FILE``

    Returns:
        The configured package logger
    """
    config = get_settings().logging_config
    level = logging.getLevelName((log_level or config['level']).upper())
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _handlers(log_file or config.get('file')):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


@lru_cache()
def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger after making sure the package tree is configured."""
    setup_logging()
    return logging.getLogger(name)
