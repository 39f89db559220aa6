"""
Fakes for the veo3ops test suite.
"""

import json
import threading
from datetime import datetime
from typing import Dict, List, Optional, Union

import requests
from requests.structures import CaseInsensitiveDict

from veo3ops.errors import RemoteError
from veo3ops.operations.models import Operation, OperationStatus


class FakeStatusClient:
    """
    Scripted StatusClient.

    Each get_operation call pops the next entry from the script for that ID:
    an Operation is returned, an Exception is raised. The last entry repeats
    once the script runs out.
    """

    def __init__(self, scripts: Optional[Dict[str, List[Union[Operation, Exception]]]] = None):
        self.scripts = scripts or {}
        self.calls: List[str] = []
        self.cancel_calls: List[str] = []
        self.cancel_error: Optional[Exception] = None
        self.submitted = []
        self._lock = threading.Lock()

    def get_operation(self, operation_id: str) -> Operation:
        with self._lock:
            self.calls.append(operation_id)
            script = self.scripts[operation_id]
            step = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(step, Exception):
            raise step
        return step.copy()

    def cancel_operation(self, operation_id: str) -> None:
        self.cancel_calls.append(operation_id)
        if self.cancel_error is not None:
            raise self.cancel_error

    def generate_video(self, request) -> Operation:
        self.submitted.append(request)
        return Operation(id=f"operations/{len(self.submitted)}", metadata=request.to_metadata())

    def call_count(self, operation_id: str) -> int:
        return self.calls.count(operation_id)


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(
        self,
        status_code: int = 200,
        content: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        reason: str = "OK",
        fail_after: Optional[int] = None,
    ):
        self.status_code = status_code
        self.content = content
        self.headers = CaseInsensitiveDict(headers or {})
        self.reason = reason
        self.fail_after = fail_after
        self.closed = False

    @classmethod
    def json_body(cls, payload: dict, status_code: int = 200) -> "FakeResponse":
        return cls(status_code=status_code, content=json.dumps(payload).encode())

    def iter_content(self, chunk_size: int = 1):
        sent = 0
        for start in range(0, len(self.content), chunk_size):
            if self.fail_after is not None and sent >= self.fail_after:
                raise requests.exceptions.ChunkedEncodingError("connection broken")
            chunk = self.content[start:start + chunk_size]
            sent += len(chunk)
            yield chunk

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class FakeSession:
    """
    Records requests and replays queued responses.

    Queued entries may be FakeResponse objects or exceptions to raise.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.requests: List[dict] = []

    def _next(self, **record):
        self.requests.append(record)
        step = self.responses.pop(0)
        if isinstance(step, Exception):
            raise step
        return step

    def request(self, method, url, headers=None, data=None, timeout=None):
        return self._next(method=method, url=url, headers=headers, data=data)

    def get(self, url, headers=None, stream=False, timeout=None):
        return self._next(method="GET", url=url, headers=headers, stream=stream)

    def head(self, url, headers=None, allow_redirects=True, timeout=None):
        return self._next(method="HEAD", url=url, headers=headers)


def make_operation(
    op_id: str = "op-1",
    status: OperationStatus = OperationStatus.PENDING,
    **kwargs,
) -> Operation:
    """Operation factory that keeps end_time consistent with status."""
    if status.is_terminal and "end_time" not in kwargs:
        kwargs["end_time"] = datetime.now()
    return Operation(id=op_id, status=status, **kwargs)


def transient(message: str = "503 Service Unavailable") -> RemoteError:
    return RemoteError(message, status_code=503)


