"""
Operation lifecycle: tracking, polling and artifact download.
"""

from veo3ops.operations.models import (
    GeneratedVideo,
    Operation,
    OperationError,
    OperationStats,
    OperationStatus,
    VideoInfo,
)
from veo3ops.operations.store import OperationStore
from veo3ops.operations.poller import PollingConfig, Poller
from veo3ops.operations.downloader import Downloader

__all__ = [
    "GeneratedVideo",
    "Operation",
    "OperationError",
    "OperationStats",
    "OperationStatus",
    "VideoInfo",
    "OperationStore",
    "PollingConfig",
    "Poller",
    "Downloader",
]
