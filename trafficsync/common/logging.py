import logging
import sys
import time
from functools import wraps
from typing import Callable, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def setup_logger(name: str = "trafficsync", level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Sets up a logger with a standard format.

    Child loggers (``trafficsync.control...``) propagate to it, so calling this
    once at startup configures the whole package.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger

def log_execution_time(logger: logging.Logger, threshold: float = 0.01):
    """
    Decorator to measure and log execution time of a function.
    Calls slower than ``threshold`` seconds are logged at INFO, the rest at DEBUG.
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.time()
            try:
                result = func(*args, **kwargs)
                elapsed = time.time() - start
                if elapsed > threshold:
                    logger.info(f"{func.__name__} executed in {elapsed:.3f}s (over {threshold:.3f}s)")
                else:
                    logger.debug(f"{func.__name__} executed in {elapsed:.3f}s")
                return result
            except Exception as e:
                logger.error(f"{func.__name__} failed: {e}", exc_info=True)
                raise
        return wrapper
    return decorator
