"""
Centralized logging configuration for veo3ops.

Components never share a mutable logger object: each accepts an optional
``logger`` argument and falls back to ``get_logger(__name__)``.
"""

import logging
from pathlib import Path
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    log_file: Optional[str] = None,
    level: int = logging.INFO,
    log_format: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging for the command line tools.

    Args:
        log_file: Path to log file. If None, only console output is used.
        level: Logging level (default: logging.INFO).
        log_format: Custom format string. If None, uses default format.

    Returns:
        Configured root logger.
    """
    if log_format is None:
        log_format = DEFAULT_LOG_FORMAT

    handlers: list[logging.Handler] = []

    # File handler with UTF-8 encoding
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(log_format))
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(console_handler)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=handlers,
        force=True
    )

    # Connection pool chatter drowns out poll progress
    for logger_name in ("urllib3", "requests"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return logging.getLogger()


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
