"""Download orchestration: resolve the root, walk, wait, report."""

import logging
import time
from pathlib import Path
from typing import Optional, Union

from ..api import DriveClient
from ..exceptions import LocalAccessError, RemoteListError
from ..models import RemoteNode
from ..output import OutputFormatter
from ..utils import (
    DEFAULT_CONCURRENCY,
    format_duration,
    format_size,
    sanitize_filename,
)
from .context import RunContext, TransferSettings
from .progress import NullProgressAggregator, ProgressAggregator
from .scheduler import AdmissionScheduler
from .transfer import TransferUnit
from .walker import TreeWalker

logger = logging.getLogger(__name__)


class DownloadEngine:
    """Mirror a Drive file or folder to local disk.

    Already complete files are skipped, partial files are resumed and at
    most ``concurrency`` files are transferred at once.

    Examples:
        >>> engine = DownloadEngine(client)
        >>> engine.set_concurrency(4)
        >>> stats = engine.download("1AbC", Path("./downloads"))
        >>> print(f"Downloaded {stats['downloads']} files")
    """

    def __init__(
        self,
        client: DriveClient,
        output: Optional[OutputFormatter] = None,
        progress: Optional[ProgressAggregator] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        """Initialize the download engine.

        Args:
            client: Drive API client
            output: Output formatter for status messages
            progress: Progress aggregator (plain counting one if omitted)
            concurrency: Maximum simultaneous file transfers
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.progress = progress
        self.scheduler = AdmissionScheduler(concurrency)
        self.settings = TransferSettings()
        self.silent = False

    def set_concurrency(self, count: int) -> None:
        """Set the number of simultaneous transfers (before downloading)."""
        self.scheduler.set_capacity(count)
        logger.debug(f"Using concurrency: {count}")

    def set_acknowledge_abuse(self, acknowledge: bool) -> None:
        """Allow downloading files Drive flagged as abusive."""
        self.settings.acknowledge_abuse = acknowledge

    def set_silent(self, silent: bool) -> None:
        """Disable progress reporting and status output."""
        self.silent = silent
        self.output.quiet = silent

    def _make_progress(self) -> ProgressAggregator:
        if self.silent:
            return NullProgressAggregator()
        return self.progress or ProgressAggregator()

    def _ensure_directory(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalAccessError(f"Cannot create destination {path}: {e}") from e

    def download(
        self,
        root_id: str,
        dest_dir: Union[str, Path],
        output_name: Optional[str] = None,
    ) -> dict:
        """Download a file or folder tree and wait for every transfer.

        Args:
            root_id: Drive id of the file or folder
            dest_dir: Local directory that receives the file or folder
            output_name: Local name to use instead of the remote name

        Returns:
            Dictionary with run statistics (downloads, skips, errors, bytes,
            elapsed)

        Raises:
            DriveAPIError: If the root cannot be resolved
            LocalAccessError: If the destination cannot be created
        """
        start_time = time.time()
        dest_dir = Path(dest_dir)

        root = self.client.get_metadata(root_id)
        self.output.info(f"Name: {root.name}, MimeType: {root.mime_type}")
        name = output_name or sanitize_filename(root.name, fallback=root.id)

        context = RunContext(self.scheduler, self._make_progress(), self.settings)
        try:
            if root.is_directory:
                self._download_folder(root, dest_dir / name, context)
            else:
                self._ensure_directory(dest_dir)
                if root.is_downloadable:
                    transfer = TransferUnit(self.client, context)
                    context.dispatch(lambda: transfer.run(root, dest_dir / name))
                else:
                    self.output.error(
                        f"{root.name} is a {root.mime_type} document "
                        f"and has no downloadable content"
                    )
                    context.stats.record_failure()
            context.wait()
        finally:
            context.shutdown()

        stats = context.stats.as_dict()
        stats["elapsed"] = time.time() - start_time
        self._display_summary(stats)
        return stats

    def _download_folder(
        self, root: RemoteNode, local_root: Path, context: RunContext
    ) -> None:
        self._ensure_directory(local_root)
        walker = TreeWalker(self.client, context)
        walker.mark_visited(root.id)

        try:
            children = walker.list_children(root.id)
        except RemoteListError as e:
            self.output.error(f"Could not list {root.name}: {e}")
            context.stats.record_failure()
            return

        if not children:
            self.output.info(f"{root.name} is empty, nothing to download")
            return

        logger.debug(f"Traversing {root.name} ({len(children)} entries)")
        walker.dispatch_children(children, local_root)

    def _display_summary(self, stats: dict) -> None:
        """Display download summary.

        Args:
            stats: Statistics dictionary
        """
        self.output.print("")
        self.output.success("Download complete!")
        self.output.info(f"  Downloaded: {stats['downloads']}")
        if stats["skips"] > 0:
            self.output.info(f"  Already present: {stats['skips']}")
        if stats["errors"] > 0:
            self.output.info(f"  [red]Failed: {stats['errors']}[/red]")
        self.output.info(f"  Transferred: {format_size(stats['bytes'])}")
        self.output.info(f"  Time taken: {format_duration(stats['elapsed'])}")
        logger.info(
            "Downloaded %d, skipped %d, failed %d in %.2fs",
            stats["downloads"],
            stats["skips"],
            stats["errors"],
            stats["elapsed"],
        )
