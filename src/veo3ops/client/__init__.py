"""
Remote API access: the Veo HTTP client, its payload schemas and the
video URI extraction strategies.
"""

from veo3ops.client.base import StatusClient
from veo3ops.client.schemas import GenerationRequest, OperationResponse
from veo3ops.client.uri_extraction import extract_video_uri
from veo3ops.client.veo_client import DEFAULT_BASE_URL, VeoClient

__all__ = [
    "StatusClient",
    "GenerationRequest",
    "OperationResponse",
    "extract_video_uri",
    "DEFAULT_BASE_URL",
    "VeoClient",
]
