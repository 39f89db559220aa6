"""
veo3ops

Tracks Veo video generation operations, polls them to completion with
backoff, and downloads the finished videos.
"""

from veo3ops.operations import (
    Downloader,
    Operation,
    OperationStatus,
    OperationStore,
    Poller,
    PollingConfig,
)
from veo3ops.client import GenerationRequest, VeoClient
from veo3ops.config import Settings

__version__ = "1.0.0"
__all__ = [
    "Downloader",
    "Operation",
    "OperationStatus",
    "OperationStore",
    "Poller",
    "PollingConfig",
    "GenerationRequest",
    "VeoClient",
    "Settings",
]
