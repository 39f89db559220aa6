"""
Streaming download of generated videos.

Bytes are written to disk as they arrive, so memory use does not grow with
the artifact size. Retried downloads start again from the first byte.
"""

import logging
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO, Union

import requests

from veo3ops.errors import (
    DownloadError,
    OperationCancelledError,
    OperationIncompleteError,
    RetriesExhaustedError,
)
from veo3ops.operations.models import GeneratedVideo, Operation, OperationStatus, VideoInfo
from veo3ops.utils.formatting import format_file_size
from veo3ops.utils.logging_config import get_logger

logger = get_logger(__name__)

API_KEY_HEADER = "x-goog-api-key"
DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1 MB


def _metadata_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _metadata_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


class Downloader:
    """
    Downloads the video produced by a completed operation.

    Example:
        >>> downloader = Downloader(api_key=settings.api_key, show_progress=True)
        >>> video = downloader.download_video_with_retry(op, "out/clip.mp4")
        >>> print(video.file_size_bytes)
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        api_key: Optional[str] = None,
        timeout: float = 600.0,
        retry_delay: float = 5.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        show_progress: bool = False,
        logger: Optional[logging.Logger] = None,
        output: Optional[TextIO] = None,
    ):
        """
        Initialize the downloader.

        Args:
            session: requests.Session to use. A new one is created if None.
            api_key: Credential sent with artifact requests, if required.
            timeout: Socket timeout in seconds for each request.
            retry_delay: Fixed pause in seconds between download attempts.
            chunk_size: Bytes read per streaming chunk.
            show_progress: Print transfer progress.
            logger: Logger to use instead of the module logger.
            output: Stream for progress text. Defaults to sys.stdout.
        """
        self.session = session or requests.Session()
        self.api_key = api_key
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.chunk_size = chunk_size
        self.show_progress = show_progress
        self.logger = logger or get_logger(__name__)
        self.output = output

    def _headers(self) -> dict:
        if self.api_key:
            return {API_KEY_HEADER: self.api_key}
        return {}

    def _print(self, text: str, end: str = "\n") -> None:
        print(text, end=end, file=self.output or sys.stdout, flush=True)

    def download_video(
        self,
        operation: Operation,
        destination: Union[str, Path],
        cancel_event: Optional[threading.Event] = None,
    ) -> GeneratedVideo:
        """
        Download a completed operation's video to destination.

        Args:
            operation: Operation with status DONE and a video URI.
            destination: File path to write. Parent directories are created.
            cancel_event: Set by the caller to abort the transfer.

        Returns:
            GeneratedVideo describing the file, enriched with the
            operation's generation metadata.

        Raises:
            OperationIncompleteError: If the operation is not DONE or has no
                video URI. Nothing is requested or written.
            DownloadError: On transport failure or a non-200 reply.
            OperationCancelledError: If cancel_event is set.
        """
        if operation.status != OperationStatus.DONE:
            raise OperationIncompleteError(
                f"operation {operation.id} is not complete (status: {operation.status.value})"
            )
        if not operation.video_uri:
            raise OperationIncompleteError(f"operation {operation.id} has no video URI")

        cancel_event = cancel_event or threading.Event()
        if cancel_event.is_set():
            raise OperationCancelledError(f"download of {operation.id} cancelled")

        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)

        started = time.monotonic()
        try:
            response = self.session.get(
                operation.video_uri,
                headers=self._headers(),
                stream=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DownloadError(f"failed to download video: {e}") from e

        with response:
            if response.status_code != 200:
                raise DownloadError(
                    f"download failed with status {response.status_code}: {response.reason}",
                    status_code=response.status_code,
                )
            written = self._stream_to_file(response, path, cancel_event)

        elapsed = time.monotonic() - started
        video = self._describe(operation, path, written)

        self.logger.info(
            f"Downloaded {operation.id} to {path} ({format_file_size(written)} in {elapsed:.1f}s)"
        )
        if self.show_progress:
            self._print(f"Video downloaded to {path} ({format_file_size(written)})")
        return video

    def _stream_to_file(
        self,
        response: requests.Response,
        path: Path,
        cancel_event: threading.Event,
    ) -> int:
        """Copy the response body to path chunk by chunk. Returns bytes written."""
        total = self._content_length(response)
        written = 0
        completed = False

        try:
            with open(path, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if cancel_event.is_set():
                        raise OperationCancelledError(f"download to {path} cancelled")
                    if not chunk:
                        continue
                    f.write(chunk)
                    written += len(chunk)
                    if self.show_progress:
                        self._report_progress(written, total)
            completed = True
        except requests.RequestException as e:
            raise DownloadError(f"failed to save video: {e}") from e
        finally:
            if self.show_progress and written:
                self._print("")
            if not completed:
                path.unlink(missing_ok=True)

        return written

    def _report_progress(self, written: int, total: Optional[int]) -> None:
        if total:
            self._print(
                f"\rDownloading video: {written * 100 // total}% "
                f"({format_file_size(written)}/{format_file_size(total)})",
                end="",
            )
        else:
            self._print(f"\rDownloading video: {format_file_size(written)}", end="")

    @staticmethod
    def _content_length(response: requests.Response) -> Optional[int]:
        value = response.headers.get("Content-Length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @staticmethod
    def _describe(operation: Operation, path: Path, written: int) -> GeneratedVideo:
        """Build the GeneratedVideo record, copying known generation metadata."""
        video = GeneratedVideo(
            file_path=str(path),
            operation_id=operation.id,
            file_size_bytes=written,
            created_at=datetime.now(),
        )

        metadata = operation.metadata or {}
        video.model = _metadata_str(metadata.get("model"))
        video.prompt = _metadata_str(metadata.get("prompt"))
        video.duration_seconds = _metadata_int(metadata.get("duration_seconds"))
        video.resolution = _metadata_str(metadata.get("resolution"))
        video.aspect_ratio = _metadata_str(metadata.get("aspect_ratio"))

        if operation.start_time is not None and operation.end_time is not None:
            video.generation_time_seconds = int(
                (operation.end_time - operation.start_time).total_seconds()
            )
        return video

    def download_video_with_retry(
        self,
        operation: Operation,
        destination: Union[str, Path],
        max_attempts: int = 3,
        cancel_event: Optional[threading.Event] = None,
    ) -> GeneratedVideo:
        """
        Download with a fixed delay between failed attempts.

        Only DownloadError is retried. Precondition failures and
        cancellation surface immediately.

        Args:
            operation: Operation with status DONE and a video URI.
            destination: File path to write.
            max_attempts: Total attempts, including the first.
            cancel_event: Set by the caller to abort.

        Returns:
            GeneratedVideo from the successful attempt.

        Raises:
            RetriesExhaustedError: After max_attempts failed attempts.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        cancel_event = cancel_event or threading.Event()
        last_error: Optional[DownloadError] = None

        for attempt in range(1, max_attempts + 1):
            try:
                return self.download_video(operation, destination, cancel_event)
            except DownloadError as e:
                last_error = e
                if attempt == max_attempts:
                    break
                self.logger.warning(
                    f"Download attempt {attempt}/{max_attempts} for {operation.id} failed, "
                    f"retrying in {self.retry_delay:.0f}s: {e}"
                )
                if self.show_progress:
                    self._print(
                        f"Download attempt {attempt} failed, retrying in {self.retry_delay:.0f} seconds..."
                    )
                if cancel_event.wait(self.retry_delay):
                    raise OperationCancelledError(f"download of {operation.id} cancelled") from e

        self.logger.error(f"Download of {operation.id} failed after {max_attempts} attempts")
        raise RetriesExhaustedError(
            f"download of {operation.id} failed after {max_attempts} attempts",
            attempts=max_attempts,
            last_error=last_error,
        ) from last_error

    # =========================================================================
    # HEAD PROBES
    # =========================================================================

    def _head(self, video_uri: str) -> requests.Response:
        if not video_uri:
            raise ValueError("video URI is empty")
        try:
            response = self.session.head(
                video_uri,
                headers=self._headers(),
                allow_redirects=True,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DownloadError(f"failed to reach {video_uri}: {e}") from e
        response.close()
        return response

    def check_availability(self, video_uri: str) -> bool:
        """
        Check whether a video can be downloaded, without transferring it.

        Returns:
            True for a 200 reply, False for any other status.

        Raises:
            ValueError: If video_uri is empty.
            DownloadError: If the server cannot be reached.
        """
        response = self._head(video_uri)
        available = response.status_code == 200
        if not available:
            self.logger.debug(f"Video not available (status {response.status_code}): {video_uri}")
        return available

    def get_remote_info(self, video_uri: str) -> VideoInfo:
        """
        Fetch size, type and modification time of a remote video.

        Raises:
            ValueError: If video_uri is empty.
            DownloadError: On transport failure or a non-200 reply.
        """
        response = self._head(video_uri)
        if response.status_code != 200:
            raise DownloadError(
                f"video info request failed (status {response.status_code})",
                status_code=response.status_code,
            )
        return VideoInfo(
            content_length=self._content_length(response),
            content_type=response.headers.get("Content-Type", ""),
            last_modified=response.headers.get("Last-Modified", ""),
        )
