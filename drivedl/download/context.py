"""Shared state of a single download run."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..utils import (
    DEFAULT_BACKOFF_UNIT,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
)
from .progress import ProgressAggregator
from .scheduler import AdmissionScheduler

logger = logging.getLogger(__name__)


class WorkTracker:
    """Wait group whose member count may grow while someone is waiting.

    ``wait`` returns only once every unit added so far, including units
    added after the wait began, has called ``done``.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = 0

    @property
    def pending(self) -> int:
        with self._cond:
            return self._pending

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._pending += n

    def done(self) -> None:
        with self._cond:
            if self._pending <= 0:
                raise RuntimeError("WorkTracker.done() called more times than add()")
            self._pending -= 1
            if self._pending == 0:
                self._cond.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending.

        Returns:
            False if the timeout expired first
        """
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout=timeout)


@dataclass
class RunStats:
    """Counters for the run summary; increments are thread-safe."""

    downloaded: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_downloaded: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record_download(self, nbytes: int) -> None:
        with self._lock:
            self.downloaded += 1
            self.bytes_downloaded += nbytes

    def record_skip(self) -> None:
        with self._lock:
            self.skipped += 1

    def record_failure(self) -> None:
        with self._lock:
            self.failed += 1

    def as_dict(self) -> dict:
        with self._lock:
            return {
                "downloads": self.downloaded,
                "skips": self.skipped,
                "errors": self.failed,
                "bytes": self.bytes_downloaded,
            }


@dataclass
class TransferSettings:
    """Per-run knobs for the transfer units."""

    acknowledge_abuse: bool = False
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    backoff_unit: float = DEFAULT_BACKOFF_UNIT
    chunk_size: int = DEFAULT_CHUNK_SIZE


class RunContext:
    """Everything the walker and transfer units share during one run.

    Owned by the engine and passed by reference; holds the admission
    scheduler, progress aggregator, completion tracker, counters and the
    worker pool.
    """

    def __init__(
        self,
        scheduler: AdmissionScheduler,
        progress: ProgressAggregator,
        settings: Optional[TransferSettings] = None,
        max_workers: Optional[int] = None,
    ):
        """Initialize the run context.

        Args:
            scheduler: Admission scheduler bounding network transfers
            progress: Progress aggregator (null variant in silent mode)
            settings: Transfer settings (defaults if omitted)
            max_workers: Worker threads; defaults to twice the scheduler
                capacity so local hashing can overlap with transfers
        """
        self.scheduler = scheduler
        self.progress = progress
        self.settings = settings or TransferSettings()
        self.tracker = WorkTracker()
        self.stats = RunStats()
        self.claimed_paths: set[str] = set()
        self._claim_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or scheduler.capacity * 2,
            thread_name_prefix="drivedl",
        )

    def claim_path(self, path: str) -> bool:
        """Reserve a local path for one transfer.

        Returns:
            False if another node of this run already claimed it
        """
        with self._claim_lock:
            if path in self.claimed_paths:
                return False
            self.claimed_paths.add(path)
            return True

    def dispatch(self, fn: Callable[[], object]) -> Future:
        """Run ``fn`` on the worker pool without blocking the caller.

        The tracker is incremented before submission and decremented when
        ``fn`` returns or raises. An exception escaping ``fn`` is logged and
        counted as a failure; the future then resolves to False.
        """
        self.tracker.add()

        def run() -> object:
            try:
                return fn()
            except Exception:
                logger.exception("[UnexpectedError] dispatched transfer failed")
                self.stats.record_failure()
                return False
            finally:
                self.tracker.done()

        try:
            return self._executor.submit(run)
        except RuntimeError:
            self.tracker.done()
            raise

    def wait(self) -> None:
        """Block until every dispatched unit has finished."""
        self.tracker.wait()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
