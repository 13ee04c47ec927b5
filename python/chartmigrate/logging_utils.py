import logging
import traceback
from typing import Optional, Union

DEFAULT_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def setup_logging(level: Optional[Union[int, str]] = None, fmt: Optional[str] = None) -> None:
    """Configure root logging once. Subsequent calls only apply an explicit level.
    If fmt is not provided, a sensible default is used.
    """
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO
    root = logging.getLogger()
    if root.handlers:
        # Already configured; keep the handlers
        if level is not None:
            root.setLevel(level)
        return
    logging.basicConfig(level=logging.INFO if level is None else level, format=fmt or DEFAULT_FORMAT)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module/logger by name, after ensuring logging is configured."""
    setup_logging()
    return logging.getLogger(name) if name else logging.getLogger(__name__)


def log_exception(logger: logging.Logger, message: str = "An error occurred", exc_info: Exception = None) -> None:
    """Centralized exception logging with full traceback.

    Args:
        logger: Logger instance to use
        message: Custom error message to log before the traceback
        exc_info: Exception instance (if None, uses current exception context)
    """
    logger.error(message)
    if exc_info is not None:
        logger.error(f"Exception type: {type(exc_info).__name__}")
        logger.error(f"Exception message: {str(exc_info)}")
        tb = "".join(traceback.format_exception(type(exc_info), exc_info, exc_info.__traceback__))
    else:
        tb = traceback.format_exc()
    logger.debug("Full traceback:")
    logger.debug(tb)
