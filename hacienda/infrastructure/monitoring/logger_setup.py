"""Console and file logging for applications built on the hacienda client.

The library itself only attaches a NullHandler to the 'hacienda' logger;
an application calls setup_logging() once at startup to see its output.
Level and file come from the 'logging.level' and 'logging.file' settings
unless passed explicitly.
"""

import logging
import sys
from typing import Optional

from hacienda.infrastructure.config import settings

DEFAULT_LOGGER_NAME = "hacienda"
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Marks handlers installed here so a second call replaces only those.
_HANDLER_MARK = "_hacienda_handler"


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARK, True)
    return handler


def setup_logging(
    log_level: Optional[int] = None,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = None,
    logger_name: str = DEFAULT_LOGGER_NAME,
) -> logging.Logger:
    """Attaches console (and optional file) handlers to the client's logger.

    Handlers owned by the application, on this logger or on the root
    logger, are left alone. Calling this again swaps the handlers it
    installed before instead of stacking new ones.

    Args:
        log_level: Minimum level; defaults to settings.get_log_level().
        log_format: Format string for log records.
        log_file: Extra file target; defaults to settings.get_log_file().
        logger_name: Logger to configure, 'hacienda' by default.

    Returns:
        The configured logger.
    """
    level = settings.get_log_level() if log_level is None else log_level
    path = settings.get_log_file() if log_file is None else log_file

    target = logging.getLogger(logger_name)
    target.setLevel(level)
    target.propagate = False

    for handler in target.handlers[:]:
        if getattr(handler, _HANDLER_MARK, False):
            target.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(log_format)

    console_handler = _mark(logging.StreamHandler(sys.stdout))
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    target.addHandler(console_handler)

    if path:
        try:
            file_handler = _mark(logging.FileHandler(path, encoding='utf-8'))
        except OSError as e:
            target.error(f"Failed to set up file logging to {path}: {e}")
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            target.addHandler(file_handler)
            target.info(f"Logging to file: {path}")

    target.debug(f"Logging configured for '{logger_name}'. Level={logging.getLevelName(level)}")
    return target
