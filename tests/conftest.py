"""Shared fixtures: an in-memory Google Drive."""

import hashlib
import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import pytest

from drivedl.exceptions import DriveNetworkError, DriveNotFoundError, RemoteListError
from drivedl.models import ChildrenPage, NodeKind, RemoteNode


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


class FakeStream:
    """Stand-in for api.RangeStream."""

    def __init__(self, data: bytes, break_after: Optional[int], delay: float):
        self._data = data
        self._break_after = break_after
        self._delay = delay

    def iter_chunks(self, chunk_size: int = 4):
        sent = 0
        limit = len(self._data) if self._break_after is None else self._break_after
        while sent < limit:
            if self._delay:
                time.sleep(self._delay)
            chunk = self._data[sent : min(sent + chunk_size, limit)]
            sent += len(chunk)
            yield chunk
        if self._break_after is not None:
            raise DriveNetworkError("Stream interrupted: connection reset")


class FakeDrive:
    """In-memory tree with paginated listing and byte-range reads.

    Failures can be queued per file id (``request_failures``) and streams
    can be cut after a number of bytes (``stream_breaks``).
    """

    def __init__(self, page_size: int = 2, stream_delay: float = 0.0):
        self.page_size = page_size
        self.stream_delay = stream_delay
        self.nodes: dict[str, RemoteNode] = {}
        self.children: dict[str, list[str]] = {}
        self.contents: dict[str, bytes] = {}
        self.request_failures: dict[str, list[Exception]] = {}
        self.stream_breaks: dict[str, list[int]] = {}
        self.list_failures: set[str] = set()
        self.range_requests: list[tuple[str, int, Optional[int], bool]] = []
        self.list_calls: list[tuple[str, Optional[str]]] = []
        self.active_streams = 0
        self.peak_streams = 0
        self._lock = threading.Lock()

    def add_folder(self, node_id: str, name: str, parent_id: Optional[str] = None):
        node = RemoteNode(
            id=node_id,
            name=name,
            kind=NodeKind.DIRECTORY,
            mime_type="application/vnd.google-apps.folder",
        )
        self._add(node, parent_id)
        self.children.setdefault(node_id, [])
        return node

    def add_file(
        self,
        node_id: str,
        name: str,
        content: bytes,
        parent_id: Optional[str] = None,
        with_checksum: bool = True,
        mime_type: str = "application/octet-stream",
    ):
        node = RemoteNode(
            id=node_id,
            name=name,
            kind=NodeKind.FILE,
            size=len(content),
            checksum=md5_hex(content) if with_checksum else None,
            mime_type=mime_type,
        )
        self._add(node, parent_id)
        self.contents[node_id] = content
        return node

    def _add(self, node: RemoteNode, parent_id: Optional[str]) -> None:
        self.nodes[node.id] = node
        if parent_id is not None:
            self.children.setdefault(parent_id, []).append(node.id)

    def get_metadata(self, node_id: str) -> RemoteNode:
        if node_id not in self.nodes:
            raise DriveNotFoundError(f"Not found: {node_id}", 404)
        return self.nodes[node_id]

    def list_children_page(
        self, dir_id: str, page_token: Optional[str] = None, page_size: int = 1000
    ) -> ChildrenPage:
        self.list_calls.append((dir_id, page_token))
        if dir_id in self.list_failures:
            raise RemoteListError(f"Failed to list folder {dir_id}", 500)
        ids = self.children.get(dir_id, [])
        start = int(page_token) if page_token else 0
        end = start + self.page_size
        return ChildrenPage(
            nodes=[self.nodes[i] for i in ids[start:end]],
            next_page_token=str(end) if end < len(ids) else None,
        )

    @contextmanager
    def open_range_stream(self, file_id, start, size, acknowledge_abuse=False):
        self.range_requests.append((file_id, start, size, acknowledge_abuse))
        failures = self.request_failures.get(file_id)
        if failures:
            raise failures.pop(0)

        breaks = self.stream_breaks.get(file_id)
        break_after = breaks.pop(0) if breaks else None
        with self._lock:
            self.active_streams += 1
            self.peak_streams = max(self.peak_streams, self.active_streams)
        try:
            yield FakeStream(self.contents[file_id][start:], break_after, self.stream_delay)
        finally:
            with self._lock:
                self.active_streams -= 1

    def requests_for(self, file_id: str) -> list[tuple[str, int, Optional[int], bool]]:
        return [r for r in self.range_requests if r[0] == file_id]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_drive():
    """Create an empty fake Drive."""
    return FakeDrive()


@pytest.fixture
def sample_tree(fake_drive):
    """Tree A/{f1, B/{f2}} rooted at folder id 'A'."""
    fake_drive.add_folder("A", "A")
    fake_drive.add_file("f1", "f1", b"first file content", parent_id="A")
    fake_drive.add_folder("B", "B", parent_id="A")
    fake_drive.add_file("f2", "f2", b"second file, a bit longer", parent_id="B")
    return fake_drive
