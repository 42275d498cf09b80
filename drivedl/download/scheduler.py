"""Bounded admission of concurrent transfers."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from ..utils import DEFAULT_CONCURRENCY


class AdmissionScheduler:
    """Counting semaphore that caps how many transfers talk to the network.

    Capacity is fixed once the first slot has been taken.
    """

    def __init__(self, capacity: int = DEFAULT_CONCURRENCY):
        if capacity < 1:
            raise ValueError("Concurrency must be at least 1")
        self._capacity = capacity
        self._semaphore = threading.BoundedSemaphore(capacity)
        self._lock = threading.Lock()
        self._started = False
        self._active = 0
        self._peak = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        """Slots currently held."""
        return self._active

    @property
    def peak(self) -> int:
        """Highest number of slots ever held at the same time."""
        return self._peak

    def set_capacity(self, capacity: int) -> None:
        """Change the capacity before any slot has been taken.

        Raises:
            ValueError: If capacity is below 1
            RuntimeError: If a slot has already been acquired
        """
        if capacity < 1:
            raise ValueError("Concurrency must be at least 1")
        with self._lock:
            if self._started:
                raise RuntimeError("Cannot change concurrency after transfers started")
            self._capacity = capacity
            self._semaphore = threading.BoundedSemaphore(capacity)

    def acquire(self) -> None:
        """Block until a slot is free, then take it."""
        with self._lock:
            self._started = True
            semaphore = self._semaphore
        semaphore.acquire()
        with self._lock:
            self._active += 1
            self._peak = max(self._peak, self._active)

    def release(self) -> None:
        """Free one slot.

        Raises:
            ValueError: If no slot is held
        """
        with self._lock:
            self._semaphore.release()
            self._active -= 1

    @contextmanager
    def slot(self) -> Iterator[None]:
        """Hold one slot for the duration of the block, on every exit path."""
        self.acquire()
        try:
            yield
        finally:
            self.release()
