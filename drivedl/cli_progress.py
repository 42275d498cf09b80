"""CLI progress display for downloads.

This module provides a Rich-based progress aggregator that renders one
bar per active transfer plus an overall file counter.
"""

import threading
from typing import Optional

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TransferSpeedColumn,
)

from .download.progress import ProgressAggregator, ProgressHandle


def _shorten(label: str, width: int = 40) -> str:
    """Trim long file names so the bars stay aligned."""
    if len(label) <= width:
        return label.ljust(width)
    return label[: width - 1] + "…"


class RichProgressAggregator(ProgressAggregator):
    """Rich-based progress display for transfers.

    Each ProgressHandle becomes a Rich task that is removed once the
    transfer finishes. The "Files" task counts finished transfers against
    the transfers started so far, so its total grows while the tree is
    being walked.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        super().__init__()
        self._progress: Optional[Progress] = None
        self._files_task: Optional[TaskID] = None
        self._tasks: dict[int, TaskID] = {}
        self._tasks_lock = threading.Lock()

    def _on_start(self, handle: ProgressHandle) -> None:
        if self._progress is None:
            return
        task = self._progress.add_task(
            _shorten(handle.label),
            total=handle.total,
            completed=handle.completed,
        )
        with self._tasks_lock:
            self._tasks[handle.handle_id] = task
        self._update_files_task()

    def _on_advance(self, handle: ProgressHandle, n: int) -> None:
        if self._progress is None:
            return
        with self._tasks_lock:
            task = self._tasks.get(handle.handle_id)
        if task is not None:
            self._progress.advance(task, n)

    def _on_finish(self, handle: ProgressHandle) -> None:
        if self._progress is None:
            return
        with self._tasks_lock:
            task = self._tasks.pop(handle.handle_id, None)
        if task is not None:
            self._progress.remove_task(task)
        self._update_files_task()

    def _update_files_task(self) -> None:
        if self._progress is None or self._files_task is None:
            return
        self._progress.update(
            self._files_task,
            description=_shorten(f"Files {self.files_finished}/{self.files_started}"),
        )

    def __enter__(self) -> "RichProgressAggregator":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._files_task = self._progress.add_task(
            _shorten("Files 0/0"), total=None
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._files_task = None
            with self._tasks_lock:
                self._tasks.clear()
