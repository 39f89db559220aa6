"""
Human-readable formatting for durations and byte counts.
"""

from datetime import timedelta
from typing import Union


def format_duration(duration: Union[timedelta, float]) -> str:
    """
    Format an elapsed time as ``M:SS``.

    Args:
        duration: timedelta or number of seconds.

    Returns:
        String such as "0:07" or "12:30".
    """
    if isinstance(duration, timedelta):
        total_seconds = int(duration.total_seconds())
    else:
        total_seconds = int(duration)
    total_seconds = max(total_seconds, 0)

    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def format_file_size(size_bytes: int) -> str:
    """
    Format a byte count with binary units.

    Args:
        size_bytes: Number of bytes.

    Returns:
        String such as "512 B", "1.5 KB" or "3.2 MB".
    """
    unit = 1024
    if size_bytes < unit:
        return f"{size_bytes} B"

    div, exp = unit, 0
    n = size_bytes // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size_bytes / div:.1f} {'KMGTPE'[exp]}B"
