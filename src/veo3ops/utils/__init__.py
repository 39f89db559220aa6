"""
Utility modules for veo3ops.
"""

from veo3ops.utils.formatting import format_duration, format_file_size
from veo3ops.utils.logging_config import setup_logging, get_logger
from veo3ops.utils.rwlock import ReadWriteLock

__all__ = ["format_duration", "format_file_size", "setup_logging", "get_logger", "ReadWriteLock"]
