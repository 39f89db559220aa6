"""
Status polling for long-running operations.

Each operation is driven by its own polling loop. A loop sleeps
``base_interval`` between successful status checks. After a failed check it
backs off by ``backoff_factor`` up to ``max_interval``, and the next
successful check resets it to ``base_interval``. ``max_retries`` consecutive
failures end the loop with RetriesExhaustedError.

Cancellation uses a threading.Event: it is checked before every remote call
and interrupts every sleep.
"""

import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Set, TextIO

from veo3ops.errors import (
    AlreadyPollingError,
    OperationCancelledError,
    OperationNotFoundError,
    RemoteError,
    RetriesExhaustedError,
)
from veo3ops.operations.models import Operation
from veo3ops.operations.store import OperationStore
from veo3ops.utils.formatting import format_duration
from veo3ops.utils.logging_config import get_logger

if TYPE_CHECKING:
    from veo3ops.client.base import StatusClient

logger = get_logger(__name__)

ProgressCallback = Callable[[Operation], None]


@dataclass
class PollingConfig:
    """
    Polling cadence and failure tolerance.

    Attributes:
        base_interval: Seconds between successful status checks.
        max_interval: Ceiling in seconds for the backoff interval.
        backoff_factor: Interval multiplier after a failed check (> 1).
        max_retries: Consecutive failed checks tolerated.
    """
    base_interval: float = 10.0
    max_interval: float = 300.0
    backoff_factor: float = 1.5
    max_retries: int = 10

    def validate(self) -> "PollingConfig":
        """
        Check the configuration.

        Raises:
            ValueError: If any value is out of range.
        """
        if self.base_interval < 0:
            raise ValueError(f"base_interval must be >= 0, got {self.base_interval}")
        if self.max_interval < self.base_interval:
            raise ValueError(
                f"max_interval ({self.max_interval}) must be >= "
                f"base_interval ({self.base_interval})"
            )
        if self.backoff_factor <= 1:
            raise ValueError(f"backoff_factor must be > 1, got {self.backoff_factor}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        return self

    def next_interval(self, interval: float) -> float:
        """Grow an interval by the backoff factor, capped at max_interval."""
        return min(interval * self.backoff_factor, self.max_interval)


class Poller:
    """
    Drives operations to a terminal status by polling the remote API.

    At most one polling loop runs per operation ID on a given Poller; a
    second concurrent poll_operation() for the same ID raises
    AlreadyPollingError.

    Example:
        >>> poller = Poller(client, store, PollingConfig(base_interval=5))
        >>> op = poller.wait_for_completion("operations/abc", show_progress=True)
        >>> print(op.status, op.video_uri)
    """

    def __init__(
        self,
        client: "StatusClient",
        store: OperationStore,
        config: Optional[PollingConfig] = None,
        logger: Optional[logging.Logger] = None,
        output: Optional[TextIO] = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Remote status client.
            store: Store that receives every status observation.
            config: Polling configuration. Uses defaults if None.
            logger: Logger to use instead of the module logger.
            output: Stream for progress text. Defaults to sys.stdout.
        """
        self.client = client
        self.store = store
        self.config = (config or PollingConfig()).validate()
        self.logger = logger or get_logger(__name__)
        self.output = output
        self._in_flight: Set[str] = set()
        self._in_flight_lock = threading.Lock()

    def set_polling_config(
        self,
        base_interval: float,
        max_interval: float,
        backoff_factor: float,
        max_retries: int,
    ) -> None:
        """Replace the polling configuration. Loops already running keep theirs."""
        self.config = PollingConfig(
            base_interval=base_interval,
            max_interval=max_interval,
            backoff_factor=backoff_factor,
            max_retries=max_retries,
        ).validate()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _try_claim(self, operation_id: str) -> bool:
        with self._in_flight_lock:
            if operation_id in self._in_flight:
                return False
            self._in_flight.add(operation_id)
            return True

    def _release(self, operation_id: str) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(operation_id)

    @contextmanager
    def _claimed(self, operation_id: str) -> Iterator[None]:
        if not self._try_claim(operation_id):
            raise AlreadyPollingError(operation_id)
        try:
            yield
        finally:
            self._release(operation_id)

    def is_polling(self, operation_id: str) -> bool:
        """True while a polling loop or single check owns the ID."""
        with self._in_flight_lock:
            return operation_id in self._in_flight

    def _wait(self, seconds: float, cancel_event: threading.Event) -> None:
        """Sleep, returning early with OperationCancelledError if cancelled."""
        if cancel_event.wait(seconds):
            raise OperationCancelledError("polling cancelled")

    def _stored_terminal(self, operation_id: str) -> Optional[Operation]:
        """The stored record if it is already terminal, else None."""
        try:
            op = self.store.get(operation_id)
        except OperationNotFoundError:
            return None
        return op if op.is_terminal else None

    def _record(self, operation_id: str, observed: Operation) -> Operation:
        """
        Write a status observation into the store.

        Metadata and start_time already known locally are kept, so the
        download step can still report the generation parameters. If the
        stored record turned terminal meanwhile (a local cancel), that
        record wins and is returned instead.
        """
        return self.store.record_observation(operation_id, observed)

    # =========================================================================
    # POLLING
    # =========================================================================

    def poll_operation(
        self,
        operation_id: str,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Operation:
        """
        Poll one operation until it reaches a terminal status.

        Every successful observation is written to the store (in the order
        received) and passed to progress_callback.
        If the stored record is already terminal (for example cancelled
        locally while this loop slept), it is returned without another
        remote call.

        Args:
            operation_id: Operation to poll.
            progress_callback: Called with each observed Operation.
            cancel_event: Set by the caller to stop polling.

        Returns:
            The terminal Operation.

        Raises:
            AlreadyPollingError: If the ID is already being polled.
            OperationCancelledError: If cancel_event is set.
            RetriesExhaustedError: After max_retries + 1 consecutive failures.
        """
        cancel_event = cancel_event or threading.Event()
        config = self.config

        with self._claimed(operation_id):
            interval = config.base_interval
            retries = 0

            while True:
                if cancel_event.is_set():
                    raise OperationCancelledError(f"polling of {operation_id} cancelled")

                stored = self._stored_terminal(operation_id)
                if stored is not None:
                    self.logger.info(f"Operation {operation_id} already {stored.status.value}")
                    return stored

                try:
                    observed = self.client.get_operation(operation_id)
                except RemoteError as e:
                    retries += 1
                    if retries > config.max_retries:
                        self.logger.error(
                            f"Giving up on {operation_id} after {retries} failed status checks"
                        )
                        raise RetriesExhaustedError(
                            f"max retries exceeded polling operation {operation_id}",
                            attempts=retries,
                            last_error=e,
                        ) from e

                    self.logger.warning(
                        f"Status check for {operation_id} failed "
                        f"({retries}/{config.max_retries}), retrying in {interval:.1f}s: {e}"
                    )
                    self._wait(interval, cancel_event)
                    interval = config.next_interval(interval)
                    continue

                retries = 0
                interval = config.base_interval

                op = self._record(operation_id, observed)
                if progress_callback is not None:
                    progress_callback(op.copy())

                if op.is_terminal:
                    self.logger.info(f"Operation {operation_id} finished: {op.status.value}")
                    return op

                self._wait(interval, cancel_event)

    def poll_all_active(
        self,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        """
        Poll every currently active operation concurrently until all finish.

        The active set is snapshotted once; each operation gets its own
        thread. If any loop fails, the last error observed is raised after
        all loops have ended. Per-operation errors are not aggregated.

        Raises:
            Exception: The last error raised by any polling loop.
        """
        active = self.store.list_active()
        if not active:
            return

        cancel_event = cancel_event or threading.Event()
        last_error: Optional[Exception] = None

        with ThreadPoolExecutor(
            max_workers=len(active), thread_name_prefix="veo3-poll"
        ) as executor:
            futures = {
                executor.submit(self.poll_operation, op.id, progress_callback, cancel_event): op.id
                for op in active
            }
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    self.logger.error(f"Polling {futures[future]} failed: {e}")
                    last_error = e

        if last_error is not None:
            raise last_error

    def _poll_once(
        self,
        operation_id: str,
        progress_callback: Optional[ProgressCallback],
        cancel_event: threading.Event,
    ) -> None:
        """Single best-effort status check used by continuous polling."""
        if cancel_event.is_set() or not self._try_claim(operation_id):
            return
        try:
            if cancel_event.is_set():
                return
            try:
                observed = self.client.get_operation(operation_id)
            except RemoteError as e:
                self.logger.debug(f"Ignoring failed status check for {operation_id}: {e}")
                return

            op = self._record(operation_id, observed)
            if progress_callback is not None:
                progress_callback(op.copy())
        except Exception:
            self.logger.exception(f"Continuous poll of {operation_id} failed")
        finally:
            self._release(operation_id)

    def start_continuous_polling(
        self,
        cancel_event: threading.Event,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Check every active operation once per base_interval until cancelled.

        Blocks the calling thread; run it in a background thread to watch
        operations while doing other work. Each tick runs one thread per
        active operation and waits for them before the next interval starts.
        Remote failures are ignored without retry bookkeeping, and IDs that
        another loop is already polling are skipped for that tick. Checks
        that have not reached the remote call when cancel_event is set are
        dropped.

        Args:
            cancel_event: Set to stop polling.
            progress_callback: Called with each observed Operation.
        """
        if cancel_event is None:
            raise ValueError("continuous polling requires a cancel_event")

        while not cancel_event.wait(self.config.base_interval):
            active = self.store.list_active()
            if not active:
                continue
            with ThreadPoolExecutor(
                max_workers=len(active), thread_name_prefix="veo3-watch"
            ) as executor:
                for op in active:
                    executor.submit(self._poll_once, op.id, progress_callback, cancel_event)

        self.logger.debug("Continuous polling stopped")

    def wait_for_completion(
        self,
        operation_id: str,
        show_progress: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> Operation:
        """
        Poll an operation to completion and return its final stored state.

        Args:
            operation_id: Operation to wait for.
            show_progress: Print a status line with elapsed time.
            cancel_event: Set by the caller to stop waiting.

        Returns:
            The final Operation from the store.
        """
        output = self.output or sys.stdout
        progress_callback = None

        if show_progress:
            def progress_callback(op: Operation) -> None:
                elapsed = format_duration(datetime.now() - op.start_time)
                status = op.status.value.lower()
                if op.progress > 0:
                    line = f"\r{status}... ({op.progress * 100:.0f}%, elapsed: {elapsed})"
                else:
                    line = f"\r{status}... (elapsed: {elapsed})"
                print(line, end="", file=output, flush=True)

        try:
            self.poll_operation(operation_id, progress_callback, cancel_event)
        finally:
            if show_progress:
                print(file=output)

        return self.store.get(operation_id)
