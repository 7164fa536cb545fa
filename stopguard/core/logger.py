"""
Logging for the engine and its scheduler entry point.

Console output is colored by level; LOG_FORMAT=plain switches to a
greppable one-line format (the same one used for LOG_FILE_PATH).

Usage:
    from stopguard.core.logger import get_logger
    logger = get_logger(__name__)

    # At process start:
    from stopguard.core.logger import setup_logging_from_settings
    setup_logging_from_settings()
"""

import logging
import sys
from typing import Optional
from datetime import datetime, timezone

PLAIN_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "motor", "pymongo")


class ColoredFormatter(logging.Formatter):
    """[TIMESTAMP] LEVEL [module] message, colored by level"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m',
    }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime(DATE_FORMAT)
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])

        module_name = record.name.removeprefix('stopguard.')

        line = (
            f"{color}[{timestamp}] {record.levelname:<8} [{module_name:<28}] "
            f"{record.getMessage()}{self.COLORS['RESET']}"
        )
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    format_type: str = "colored",
    log_file: Optional[str] = None
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name
        format_type: "colored" or "plain"
        log_file: Optional file to also log to (always plain)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    plain = logging.Formatter(PLAIN_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter() if format_type == "colored" else plain)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(plain)
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging_from_settings() -> None:
    """Configure logging from LOG_LEVEL, LOG_FORMAT and LOG_FILE_PATH."""
    from stopguard.config.settings import get_settings

    settings = get_settings()
    setup_logging(
        level=settings.LOG_LEVEL,
        format_type=settings.LOG_FORMAT,
        log_file=settings.LOG_FILE_PATH,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
