"""
Logger Module
Centralized logging using Loguru
"""

import sys
from pathlib import Path
from loguru import logger as _logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{function} | {message}"


def setup_logger(
    level: str = "INFO",
    log_file: str = "./logs/tally_sync.log",
    max_size: int = 10,
    backup_count: int = 5,
    console: bool = True,
    colorize: bool = True,
    serialize: bool = False
) -> None:
    """Configure console and rotating file sinks"""
    _logger.remove()

    if console:
        _logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT, colorize=colorize)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            rotation=f"{max_size} MB",
            retention=backup_count,
            serialize=serialize,
            encoding="utf-8"
        )


logger = _logger
