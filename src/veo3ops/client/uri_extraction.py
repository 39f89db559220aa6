"""
Video URI extraction from completed operation responses.

The API has returned the artifact locator under several field names over
time. Each known shape is one strategy; strategies run in priority order and
the first non-empty result wins.
"""

from typing import Any, Callable, Dict, Optional, Tuple

ExtractionStrategy = Callable[[Dict[str, Any]], Optional[str]]


def _string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _first_mapping(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return None


def from_direct_fields(response: Dict[str, Any]) -> Optional[str]:
    """``videoUri`` or ``video_uri`` at the top of the response."""
    return _string(response.get("videoUri")) or _string(response.get("video_uri"))


def from_videos_array(response: Dict[str, Any]) -> Optional[str]:
    """``videos[0].uri`` (or the capitalised ``Uri``)."""
    video = _first_mapping(response.get("videos"))
    if video is None:
        return None
    return _string(video.get("uri")) or _string(video.get("Uri"))


def from_video_object(response: Dict[str, Any]) -> Optional[str]:
    """``video.uri``."""
    video = response.get("video")
    if not isinstance(video, dict):
        return None
    return _string(video.get("uri"))


def from_generated_samples(response: Dict[str, Any]) -> Optional[str]:
    """``generateVideoResponse.generatedSamples[0].video.uri``."""
    generated = response.get("generateVideoResponse")
    if not isinstance(generated, dict):
        return None
    sample = _first_mapping(generated.get("generatedSamples"))
    if sample is None:
        return None
    return from_video_object(sample)


def from_generic_fields(response: Dict[str, Any]) -> Optional[str]:
    """Less common spellings, tried last."""
    for name in ("VideoUri", "VideoURI", "uri"):
        uri = _string(response.get(name))
        if uri:
            return uri
    return None


STRATEGIES: Tuple[ExtractionStrategy, ...] = (
    from_direct_fields,
    from_videos_array,
    from_video_object,
    from_generated_samples,
    from_generic_fields,
)


def extract_video_uri(
    response: Optional[Dict[str, Any]],
    strategies: Tuple[ExtractionStrategy, ...] = STRATEGIES,
) -> str:
    """
    Find the video URI in an operation's ``response`` object.

    Args:
        response: The ``response`` field of a completed operation.
        strategies: Extraction functions in priority order.

    Returns:
        The URI, or "" when no strategy recognises the shape.
    """
    if not isinstance(response, dict):
        return ""
    for strategy in strategies:
        uri = strategy(response)
        if uri:
            return uri
    return ""
