"""Resumable download of a single file."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..api import DriveClient
from ..exceptions import (
    DriveAPIError,
    DriveNetworkError,
    LocalAccessError,
    RateLimitedError,
    RetriesExhaustedError,
    ServerError,
)
from ..models import RemoteNode
from .context import RunContext
from .progress import ProgressHandle
from .verifier import LocalFileVerifier

logger = logging.getLogger(__name__)

# Request failures worth another attempt from the same offset
RETRYABLE_REQUEST_ERRORS = (RateLimitedError, ServerError, DriveNetworkError)


@dataclass
class TransferState:
    """Mutable state of one file's download across its attempts."""

    node: RemoteNode
    target: Path
    start_offset: int = 0
    attempt: int = 1
    bytes_written: int = 0


class _StreamInterrupted(Exception):
    """The body broke off after ``offset`` bytes were safely on disk."""

    def __init__(self, offset: int, cause: Exception):
        super().__init__(str(cause))
        self.offset = offset
        self.cause = cause


class TransferUnit:
    """Download one remote file into one local path.

    The unit verifies the local copy, takes an admission slot, then loops
    over attempts until the file is complete, a non-retryable error occurs
    or ``max_attempts`` is reached. The slot is held across all attempts and
    released on every exit path. A partial file is always left in place so a
    later run can resume it.
    """

    def __init__(
        self,
        client: DriveClient,
        context: RunContext,
        verifier: Optional[LocalFileVerifier] = None,
    ):
        """Initialize the transfer unit.

        Args:
            client: Drive API client
            context: Shared run context
            verifier: Local file verifier (default instance if omitted)
        """
        self.client = client
        self.context = context
        self.verifier = verifier or LocalFileVerifier()

    def run(self, node: RemoteNode, target: Path) -> bool:
        """Download ``node`` to ``target``; never raises.

        Per-file failures are logged with the file name and id, counted and
        reported as False.

        Returns:
            True if the file is complete locally (downloaded or skipped)
        """
        try:
            return self._download(node, target)
        except LocalAccessError as e:
            logger.warning(f"[LocalAccessError] {node.name} ({node.id}): {e}")
        except RetriesExhaustedError as e:
            logger.warning(
                f"[RetriesExhausted] {node.name} ({node.id}) after "
                f"{e.attempts} attempts, partial file kept: {e}"
            )
        except DriveAPIError as e:
            logger.warning(f"[{type(e).__name__}] {node.name} ({node.id}): {e}")
        except Exception as e:
            logger.exception(f"[{type(e).__name__}] {node.name} ({node.id}): {e}")
        self.context.stats.record_failure()
        return False

    def _download(self, node: RemoteNode, target: Path) -> bool:
        result = self.verifier.verify(target, node.checksum)
        if result.complete:
            logger.info(f"{node.name} already downloaded.")
            self.context.stats.record_skip()
            return True

        state = TransferState(node=node, target=target, start_offset=result.valid_bytes)

        if node.size is not None and state.start_offset >= node.size > 0:
            if not node.checksum and state.start_offset == node.size:
                # Full length and nothing to compare against
                logger.info(f"{node.name} already downloaded (size match).")
                self.context.stats.record_skip()
                return True
            logger.warning(
                f"{node.name}: local file is {state.start_offset} bytes and cannot "
                f"be resumed against {node.size} remote bytes, downloading again "
                f"from byte 0"
            )
            state.start_offset = 0
        elif state.start_offset:
            logger.info(f"Resuming {node.name} at byte offset {state.start_offset}")

        with self.context.scheduler.slot():
            with self.context.progress.new_handle(
                node.name, node.size, completed=state.start_offset
            ) as handle:
                self._transfer_with_retry(state, handle)

        self.context.stats.record_download(state.bytes_written)
        logger.debug(f"Downloaded {node.name} ({state.bytes_written} bytes)")
        return True

    def _transfer_with_retry(self, state: TransferState, handle: ProgressHandle) -> None:
        """Run attempts until success or a terminal failure.

        Raises:
            RetriesExhaustedError: If ``max_attempts`` attempts all failed
            LocalAccessError, DriveAPIError: On non-retryable failures
        """
        settings = self.context.settings
        name = state.node.name

        while True:
            try:
                self._attempt(state, handle)
                return
            except RETRYABLE_REQUEST_ERRORS as e:
                if state.attempt >= settings.max_attempts:
                    raise RetriesExhaustedError(str(e), state.attempt) from e
                delay = settings.retry_delay
                logger.debug(
                    f"Request for {name} failed (attempt {state.attempt}/"
                    f"{settings.max_attempts}), retrying in {delay:.1f}s: {e}"
                )
            except _StreamInterrupted as e:
                state.start_offset = e.offset
                if state.attempt >= settings.max_attempts:
                    raise RetriesExhaustedError(str(e), state.attempt) from e.cause
                delay = state.attempt * settings.backoff_unit
                logger.debug(
                    f"Stream for {name} interrupted at byte {e.offset} (attempt "
                    f"{state.attempt}/{settings.max_attempts}), retrying in "
                    f"{delay:.1f}s: {e}"
                )
            time.sleep(delay)
            state.attempt += 1

    def _attempt(self, state: TransferState, handle: ProgressHandle) -> None:
        """Open the target at the resume offset and stream the rest into it."""
        node = state.node
        settings = self.context.settings

        try:
            f = open(state.target, "r+b" if state.target.exists() else "wb")
        except OSError as e:
            raise LocalAccessError(f"Cannot open {state.target}: {e}") from e

        with f:
            try:
                f.seek(state.start_offset)
                f.truncate()
            except OSError as e:
                raise LocalAccessError(f"Cannot seek in {state.target}: {e}") from e

            with self.client.open_range_stream(
                node.id,
                state.start_offset,
                node.size,
                acknowledge_abuse=settings.acknowledge_abuse,
            ) as stream:
                try:
                    for chunk in stream.iter_chunks(settings.chunk_size):
                        try:
                            f.write(chunk)
                        except OSError as e:
                            raise LocalAccessError(
                                f"Cannot write {state.target}: {e}"
                            ) from e
                        state.bytes_written += len(chunk)
                        handle.advance(len(chunk))
                except DriveNetworkError as e:
                    f.flush()
                    raise _StreamInterrupted(f.tell(), e) from e

            f.flush()
            offset = f.tell()

        if node.size is not None and offset < node.size:
            raise _StreamInterrupted(
                offset,
                DriveNetworkError(
                    f"Stream ended at byte {offset} of {node.size}"
                ),
            )
