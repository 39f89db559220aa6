"""
HTTP client for the Veo long-running operations API.

Requirements:
    - GEMINI_API_KEY environment variable set (or an explicit api_key)
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError

from veo3ops.client.schemas import ErrorEnvelope, GenerationRequest, OperationResponse
from veo3ops.client.uri_extraction import extract_video_uri
from veo3ops.errors import RemoteError
from veo3ops.operations.models import Operation, OperationError, OperationStatus
from veo3ops.utils.logging_config import get_logger

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
API_KEY_HEADER = "x-goog-api-key"

logger = get_logger(__name__)


def parse_error_response(status_code: int, body: bytes) -> RemoteError:
    """
    Turn a non-2xx reply into a RemoteError.

    Args:
        status_code: HTTP status code.
        body: Raw response body.

    Returns:
        RemoteError carrying the parsed API error when the body is a
        Google error envelope, otherwise the raw body text.
    """
    try:
        envelope = ErrorEnvelope.model_validate_json(body)
    except ValidationError:
        text = body.decode("utf-8", errors="replace") if body else ""
        return RemoteError(f"HTTP {status_code}: {text}", status_code=status_code)

    api_error = envelope.error
    error = OperationError(
        code=api_error.status or str(api_error.code or status_code),
        message=api_error.message,
        details={"http_code": status_code},
    )
    return RemoteError(
        f"HTTP {status_code}: {error}",
        status_code=status_code,
        error=error,
    )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp into a naive local datetime."""
    if not value:
        return None
    text = value.replace("Z", "+00:00")
    # fromisoformat only accepts up to microseconds
    if "." in text:
        head, _, tail = text.partition(".")
        digits = "".join(c for c in tail if c.isdigit())
        zone = tail[len(digits):]
        text = f"{head}.{digits[:6].ljust(6, '0')}{zone}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable timestamp from API: {value}")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class VeoClient:
    """
    Remote status client for Veo video generation operations.

    Example:
        >>> client = VeoClient(api_key="...")
        >>> op = client.get_operation("models/veo-3.1/operations/abc123")
        >>> print(op.status, op.video_uri)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        debug: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key sent with every request.
            base_url: API root, overridable for tests and proxies.
            session: requests.Session to use. A new one is created if None.
            timeout: Per-request timeout in seconds.
            debug: Log raw response bodies at DEBUG level.
            logger: Logger to use instead of the module logger.

        Raises:
            ValueError: If api_key is empty.
        """
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValueError("API key is required")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.debug = debug
        self.logger = logger or get_logger(__name__)

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> bytes:
        """Send a request and return the body of a 200 reply."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {API_KEY_HEADER: self.api_key, "Content-Type": "application/json"}

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                data=json.dumps(payload) if payload is not None else None,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteError(f"failed to execute request: {e}") from e

        body = response.content or b""
        if self.debug:
            self.logger.debug(f"{method} {path} -> {response.status_code}: {body[:2000]!r}")

        if response.status_code != 200:
            raise parse_error_response(response.status_code, body)
        return body

    def get_operation(self, operation_id: str) -> Operation:
        """
        Fetch an operation's current status.

        Args:
            operation_id: Operation name, e.g. "models/x/operations/abc".

        Returns:
            Operation describing the latest remote state.

        Raises:
            ValueError: If operation_id is empty.
            RemoteError: On transport failure, non-200 reply or bad JSON.
        """
        if not operation_id:
            raise ValueError("operation ID cannot be empty")

        body = self._request("GET", operation_id)
        try:
            parsed = OperationResponse.model_validate_json(body)
        except ValidationError as e:
            raise RemoteError(f"failed to parse response: {e}") from e

        return self._to_operation(parsed, operation_id)

    def _to_operation(self, parsed: OperationResponse, operation_id: str) -> Operation:
        progress = min(max(parsed.metadata.progress_percent / 100.0, 0.0), 1.0)
        op = Operation(
            id=parsed.name or operation_id,
            progress=progress,
            start_time=_parse_timestamp(parsed.metadata.create_time) or datetime.now(),
        )

        if not parsed.done:
            if parsed.metadata.state == OperationStatus.PENDING.value:
                op.status = OperationStatus.PENDING
            else:
                op.status = OperationStatus.RUNNING
            return op

        op.end_time = datetime.now()
        if parsed.error is not None:
            op.status = OperationStatus.FAILED
            op.error = OperationError(
                code=str(parsed.error.code),
                message=parsed.error.message,
                details={"status": parsed.error.status, "details": parsed.error.details},
            )
            return op

        op.status = OperationStatus.DONE
        op.progress = 1.0
        op.video_uri = extract_video_uri(parsed.response)
        if not op.video_uri and parsed.response is not None:
            self.logger.warning(
                f"Operation {op.id} is done but no video URI was found "
                f"(response keys: {sorted(parsed.response)})"
            )
        return op

    def cancel_operation(self, operation_id: str) -> None:
        """
        Ask the API to cancel an operation.

        Raises:
            ValueError: If operation_id is empty.
            RemoteError: If the API rejects the request.
        """
        if not operation_id:
            raise ValueError("operation ID cannot be empty")
        self._request("POST", f"{operation_id}:cancel", payload={})
        self.logger.info(f"Requested cancellation of operation {operation_id}")

    def generate_video(self, request: GenerationRequest) -> Operation:
        """
        Submit a text-to-video generation job.

        Args:
            request: Validated generation parameters.

        Returns:
            Newly created PENDING (or RUNNING) operation carrying the
            request parameters as metadata.

        Raises:
            RemoteError: If submission fails.
        """
        body = self._request(
            "POST",
            f"models/{request.model}:predictLongRunning",
            payload=request.to_payload(),
        )
        try:
            parsed = OperationResponse.model_validate_json(body)
        except ValidationError as e:
            raise RemoteError(f"failed to parse response: {e}") from e
        if not parsed.name:
            raise RemoteError("API response did not include an operation name")

        status = OperationStatus.PENDING
        if parsed.metadata.state == OperationStatus.RUNNING.value:
            status = OperationStatus.RUNNING

        op = Operation(id=parsed.name, status=status, metadata=request.to_metadata())
        self.logger.info(f"Submitted operation {op.id} ({request.model})")
        return op
