"""
Exception hierarchy for the operation lifecycle subsystem.

NotFound and InvalidState errors are caller mistakes and are never retried.
RemoteError covers transport failures and non-2xx replies; components retry
it according to their own policy and surface RetriesExhaustedError once the
policy gives up. OperationCancelledError propagates caller cancellation and
aborts any retry loop.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from veo3ops.operations.models import OperationError


class Veo3OpsError(Exception):
    """Base class for all veo3ops errors."""


class OperationNotFoundError(Veo3OpsError):
    """Raised when an operation ID is not tracked by the store."""

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"operation not found: {operation_id}")


class InvalidStateError(Veo3OpsError):
    """Raised when an operation is in the wrong state for the request."""


class OperationNotCancellableError(InvalidStateError):
    """Raised when cancelling an operation that already finished."""

    def __init__(self, operation_id: str, status: str):
        self.operation_id = operation_id
        self.status = status
        super().__init__(
            f"operation {operation_id} is not cancellable (status: {status})"
        )


class OperationIncompleteError(InvalidStateError):
    """Raised when downloading from an operation that has no artifact yet."""


class AlreadyPollingError(InvalidStateError):
    """Raised when a second poller is started for the same operation ID."""

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(f"operation {operation_id} is already being polled")


class RemoteError(Veo3OpsError):
    """
    A failed call to the remote service.

    Attributes:
        status_code: HTTP status code, or None for transport failures.
        error: Parsed API error body, when one was returned.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error: Optional["OperationError"] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error = error


class DownloadError(RemoteError):
    """A failed artifact transfer."""


class RetriesExhaustedError(Veo3OpsError):
    """
    Raised when a retry policy gives up.

    Attributes:
        attempts: Number of attempts made.
        last_error: The final underlying failure (also set as __cause__).
    """

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class OperationCancelledError(Veo3OpsError):
    """Raised when the caller's cancel event is set during a blocking call."""
