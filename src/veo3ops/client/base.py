"""
Interface the operation store and poller need from a remote service.
"""

from typing import Protocol

from veo3ops.operations.models import Operation


class StatusClient(Protocol):
    """Status-by-ID and cancel-by-ID for long-running operations."""

    def get_operation(self, operation_id: str) -> Operation:
        """Fetch the current status. Raises RemoteError on failure."""
        ...

    def cancel_operation(self, operation_id: str) -> None:
        """Request remote cancellation. Raises RemoteError on failure."""
        ...
