# Utils Package
# Logging, parsing helpers, constants and decorators

from .logger import logger, setup_logger
from .decorators import retry, timed

__all__ = [
    "logger",
    "setup_logger",
    "retry",
    "timed"
]
