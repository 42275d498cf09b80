"""Recursive traversal of a remote folder tree."""

import logging
from pathlib import Path
from typing import Optional

from ..api import DriveClient
from ..exceptions import RemoteListError
from ..models import RemoteNode
from ..utils import sanitize_filename
from .context import RunContext
from .transfer import TransferUnit

logger = logging.getLogger(__name__)


class TreeWalker:
    """List remote folders depth-first and dispatch one transfer per file.

    Listing and recursion happen on the calling thread; file transfers are
    handed to the run context's worker pool and are not waited for here.
    """

    def __init__(
        self,
        client: DriveClient,
        context: RunContext,
        transfer: Optional[TransferUnit] = None,
    ):
        """Initialize the walker.

        Args:
            client: Drive API client
            context: Shared run context
            transfer: Transfer unit used for every file (default instance
                if omitted)
        """
        self.client = client
        self.context = context
        self.transfer = transfer or TransferUnit(client, context)
        self._visited: set[str] = set()

    def list_children(self, dir_id: str) -> list[RemoteNode]:
        """Fetch every page of a folder listing.

        Pages are concatenated in the order returned.

        Raises:
            RemoteListError: If any page cannot be fetched
        """
        children: list[RemoteNode] = []
        page_token: Optional[str] = None
        while True:
            page = self.client.list_children_page(dir_id, page_token=page_token)
            children.extend(page.nodes)
            if not page.has_more:
                return children
            page_token = page.next_page_token

    def mark_visited(self, dir_id: str) -> bool:
        """Record that ``dir_id`` is being walked.

        Returns:
            False if it was already walked in this run
        """
        if dir_id in self._visited:
            return False
        self._visited.add(dir_id)
        return True

    def traverse(self, dir_id: str, local_dir: Path) -> None:
        """Mirror the folder ``dir_id`` into the existing ``local_dir``.

        Listing failures abort this subtree only.
        """
        if not self.mark_visited(dir_id):
            logger.debug(f"Folder {dir_id} already visited, skipping")
            return

        try:
            children = self.list_children(dir_id)
        except RemoteListError as e:
            logger.warning(f"[RemoteListError] skipping {local_dir}: {e}")
            return

        if not children:
            logger.info(f"{local_dir} is empty on the remote")
            return
        self.dispatch_children(children, local_dir)

    def dispatch_children(self, children: list[RemoteNode], local_dir: Path) -> None:
        """Recurse into folders and dispatch files from an already fetched listing."""
        for child in children:
            name = sanitize_filename(child.name, fallback=child.id)
            local_path = local_dir / name

            if child.is_directory:
                try:
                    local_path.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    logger.warning(f"[DirectoryCreationError] {local_path}: {e}")
                    continue
                self.traverse(child.id, local_path)
            else:
                self.dispatch_file(child, local_path)

    def dispatch_file(self, node: RemoteNode, local_path: Path) -> None:
        """Hand one file to the worker pool without waiting for it."""
        if not node.is_downloadable:
            logger.warning(
                f"Skipping {node.name} ({node.id}): {node.mime_type} "
                f"has no downloadable content"
            )
            return

        if not self.context.claim_path(str(local_path)):
            logger.warning(
                f"Skipping {node.name} ({node.id}): another remote file "
                f"already maps to {local_path}"
            )
            self.context.stats.record_failure()
            return

        self.context.dispatch(lambda: self.transfer.run(node, local_path))
