"""
In-memory store for tracking video generation operations.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Dict, List, Optional

from veo3ops.errors import (
    InvalidStateError,
    OperationCancelledError,
    OperationNotCancellableError,
    OperationNotFoundError,
)
from veo3ops.operations.models import Operation, OperationStats, OperationStatus
from veo3ops.utils.logging_config import get_logger
from veo3ops.utils.rwlock import ReadWriteLock

if TYPE_CHECKING:
    from veo3ops.client.base import StatusClient
    from veo3ops.client.schemas import GenerationRequest

logger = get_logger(__name__)


class OperationStore:
    """
    Thread-safe registry of known operations, keyed by operation ID.

    Mutations take the lock exclusively and reads take it shared. Records are
    copied on the way in and on the way out, so changing a returned
    Operation has no effect until it is passed back through update().

    Example:
        >>> store = OperationStore(client)
        >>> store.add(Operation(id="operations/abc"))
        >>> op = store.get("operations/abc")
        >>> op.progress = 0.5
        >>> store.update(op)
    """

    def __init__(
        self,
        client: Optional["StatusClient"] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the store.

        Args:
            client: Remote client used by cancel() and submit().
            logger: Logger to use instead of the module logger.
        """
        self.client = client
        self.logger = logger or get_logger(__name__)
        self._operations: Dict[str, Operation] = {}
        self._lock = ReadWriteLock()

    @staticmethod
    def _prepare(op: Operation) -> Operation:
        """Copy a record for storage, keeping end_time set iff it is terminal."""
        stored = op.copy()
        if stored.is_active:
            stored.end_time = None
        elif stored.end_time is None:
            stored.end_time = datetime.now()
        return stored

    # =========================================================================
    # CRUD
    # =========================================================================

    def add(self, op: Operation) -> None:
        """
        Insert an operation, replacing any record with the same ID.

        Raises:
            ValueError: If op is None or has an empty ID.
        """
        if op is None:
            raise ValueError("operation cannot be None")
        if not op.id:
            raise ValueError("operation ID cannot be empty")

        stored = self._prepare(op)
        with self._lock.write_locked():
            self._operations[stored.id] = stored
        self.logger.debug(f"Tracking operation {stored.id} ({stored.status.value})")

    def get(self, operation_id: str) -> Operation:
        """
        Get a copy of an operation by ID.

        Raises:
            OperationNotFoundError: If the ID is unknown.
        """
        with self._lock.read_locked():
            op = self._operations.get(operation_id)
            if op is None:
                raise OperationNotFoundError(operation_id)
            return op.copy()

    def exists(self, operation_id: str) -> bool:
        with self._lock.read_locked():
            return operation_id in self._operations

    def update(self, op: Operation) -> None:
        """
        Persist a modified operation.

        Raises:
            ValueError: If op is None.
            OperationNotFoundError: If the ID is not already tracked.
            InvalidStateError: If the stored record is terminal and op
                carries a different status.
        """
        if op is None:
            raise ValueError("operation cannot be None")

        stored = self._prepare(op)
        with self._lock.write_locked():
            if stored.id not in self._operations:
                raise OperationNotFoundError(stored.id)
            previous = self._operations[stored.id].status
            if previous.is_terminal and stored.status != previous:
                raise InvalidStateError(
                    f"operation {stored.id} is {previous.value} and cannot become "
                    f"{stored.status.value}"
                )
            self._operations[stored.id] = stored

        if previous != stored.status:
            self.logger.info(
                f"Operation {stored.id}: {previous.value} -> {stored.status.value}"
            )

    def record_observation(self, operation_id: str, observed: Operation) -> Operation:
        """
        Merge a remote status observation into the tracked record.

        Runs as one exclusive step, so it cannot interleave with cancel().
        Stored metadata keys and start_time are kept unless the observation
        brings new values. A record that is already terminal is left as is.

        Args:
            operation_id: ID the observation belongs to (the store key).
            observed: Operation returned by the remote client.

        Returns:
            Copy of the record as stored after the merge.
        """
        op = self._prepare(observed)
        op.id = operation_id

        with self._lock.write_locked():
            previous = self._operations.get(operation_id)
            if previous is not None:
                if previous.is_terminal:
                    self.logger.debug(
                        f"Ignoring {op.status.value} observation for {operation_id}: "
                        f"already {previous.status.value}"
                    )
                    return previous.copy()
                op.metadata = {**previous.metadata, **op.metadata}
                op.start_time = previous.start_time
            self._operations[operation_id] = op
            result = op.copy()

        if previous is not None and previous.status != op.status:
            self.logger.info(
                f"Operation {operation_id}: {previous.status.value} -> {op.status.value}"
            )
        return result

    def remove(self, operation_id: str) -> None:
        """
        Stop tracking an operation.

        Raises:
            OperationNotFoundError: If the ID is unknown.
        """
        with self._lock.write_locked():
            if operation_id not in self._operations:
                raise OperationNotFoundError(operation_id)
            del self._operations[operation_id]

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list(self) -> List[Operation]:
        """All operations, newest start_time first."""
        with self._lock.read_locked():
            ops = [op.copy() for op in self._operations.values()]
        ops.sort(key=lambda o: o.start_time, reverse=True)
        return ops

    def filter_by_status(self, status: OperationStatus) -> List[Operation]:
        """Operations with the given status, newest first."""
        return [op for op in self.list() if op.status == status]

    def list_active(self) -> List[Operation]:
        """PENDING and RUNNING operations, newest first."""
        return [op for op in self.list() if op.is_active]

    def stats(self) -> OperationStats:
        """Count operations per status."""
        stats = OperationStats()
        with self._lock.read_locked():
            for op in self._operations.values():
                stats.total += 1
                if op.status == OperationStatus.PENDING:
                    stats.pending += 1
                elif op.status == OperationStatus.RUNNING:
                    stats.running += 1
                elif op.status == OperationStatus.DONE:
                    stats.completed += 1
                elif op.status == OperationStatus.FAILED:
                    stats.failed += 1
                elif op.status == OperationStatus.CANCELLED:
                    stats.cancelled += 1
        return stats

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def submit(self, request: "GenerationRequest") -> Operation:
        """
        Submit a generation request and start tracking the new operation.

        Returns:
            Copy of the tracked operation.

        Raises:
            RuntimeError: If the store has no client.
            RemoteError: If submission fails.
        """
        if self.client is None:
            raise RuntimeError("OperationStore has no client configured")

        op = self.client.generate_video(request)
        self.add(op)
        self.logger.info(f"Submitted operation {op.id}")
        return self.get(op.id)

    def cancel(
        self,
        operation_id: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> Operation:
        """
        Cancel an active operation remotely, then mark it CANCELLED locally.

        The local record only changes after the remote call succeeds.

        Args:
            operation_id: Operation to cancel.
            cancel_event: Set by the caller to abandon the request.

        Returns:
            Copy of the cancelled operation.

        Raises:
            OperationNotFoundError: If the ID is unknown.
            OperationNotCancellableError: If the operation already finished.
            OperationCancelledError: If cancel_event is already set.
            RemoteError: If the remote cancel fails.
        """
        op = self.get(operation_id)
        if not op.is_active:
            raise OperationNotCancellableError(operation_id, op.status.value)

        if self.client is None:
            raise RuntimeError("OperationStore has no client configured")
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(f"cancel of {operation_id} abandoned")

        self.client.cancel_operation(operation_id)

        with self._lock.write_locked():
            current = self._operations.get(operation_id)
            if current is None:
                raise OperationNotFoundError(operation_id)
            # A poller may have recorded a terminal status during the remote call
            if current.is_active:
                current.status = OperationStatus.CANCELLED
                current.end_time = datetime.now()
            result = current.copy()

        self.logger.info(f"Cancelled operation {operation_id} ({result.status.value})")
        return result

    def cleanup_older_than(self, max_age: timedelta) -> int:
        """
        Remove finished operations whose end_time is older than max_age.

        Active operations are never removed.

        Args:
            max_age: Age threshold measured from end_time.

        Returns:
            Number of operations removed.
        """
        cutoff = datetime.now() - max_age
        with self._lock.write_locked():
            expired = [
                op_id for op_id, op in self._operations.items()
                if op.is_terminal and op.end_time is not None and op.end_time < cutoff
            ]
            for op_id in expired:
                del self._operations[op_id]

        if expired:
            self.logger.info(f"Cleaned up {len(expired)} finished operations")
        return len(expired)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._operations)
