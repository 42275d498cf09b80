"""Progress accounting for transfers.

The aggregator is purely observational: a broken renderer must never
fail or stall the transfer it reports on. Subclasses render by overriding
the ``_on_*`` hooks; exceptions raised there are logged and dropped.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class ProgressHandle:
    """Byte progress of one transfer, owned by that transfer."""

    def __init__(
        self,
        aggregator: "ProgressAggregator",
        handle_id: int,
        label: str,
        total: Optional[int],
        completed: int = 0,
    ):
        self._aggregator = aggregator
        self.handle_id = handle_id
        self.label = label
        self.total = total
        self.completed = completed
        self.finished = False

    def advance(self, n: int) -> None:
        """Record ``n`` more bytes written."""
        if self.finished or n <= 0:
            return
        self.completed += n
        self._aggregator._advance(self, n)

    def finish(self) -> None:
        """Release the handle. Safe to call more than once."""
        if self.finished:
            return
        self.finished = True
        self._aggregator._finish(self)

    def __enter__(self) -> "ProgressHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.finish()


class ProgressAggregator:
    """Tracks per-transfer bytes and overall completion counts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_id = 0
        self.bytes_transferred = 0
        self.files_started = 0
        self.files_finished = 0

    @property
    def active(self) -> int:
        """Handles created but not yet finished."""
        return self.files_started - self.files_finished

    def new_handle(
        self, label: str, total: Optional[int], completed: int = 0
    ) -> ProgressHandle:
        """Create a handle for one transfer.

        Args:
            label: Text shown for the transfer (usually the file name)
            total: Expected total bytes, None if unknown
            completed: Bytes already present (resume offset)

        Returns:
            ProgressHandle owned by the caller
        """
        with self._lock:
            self._next_id += 1
            handle = ProgressHandle(self, self._next_id, label, total, completed)
            self.files_started += 1
        self._notify(self._on_start, handle)
        return handle

    def _advance(self, handle: ProgressHandle, n: int) -> None:
        with self._lock:
            self.bytes_transferred += n
        self._notify(self._on_advance, handle, n)

    def _finish(self, handle: ProgressHandle) -> None:
        with self._lock:
            self.files_finished += 1
        self._notify(self._on_finish, handle)

    def _notify(self, hook, *args) -> None:
        try:
            hook(*args)
        except Exception as e:
            logger.debug(f"Progress renderer failed: {e}")

    def _on_start(self, handle: ProgressHandle) -> None:
        pass

    def _on_advance(self, handle: ProgressHandle, n: int) -> None:
        pass

    def _on_finish(self, handle: ProgressHandle) -> None:
        pass


class NullProgressHandle(ProgressHandle):
    """Handle that records nothing."""

    def advance(self, n: int) -> None:
        pass

    def finish(self) -> None:
        self.finished = True


class NullProgressAggregator(ProgressAggregator):
    """Aggregator for silent mode; handles exist but are no-ops."""

    def new_handle(
        self, label: str, total: Optional[int], completed: int = 0
    ) -> ProgressHandle:
        return NullProgressHandle(self, 0, label, total, completed)
