"""Data models for Google Drive API responses."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_APPS_MIME_PREFIX = "application/vnd.google-apps."

# Fields requested for every node, in metadata and listing calls
NODE_FIELDS = "id,name,mimeType,size,md5Checksum"


class NodeKind(Enum):
    """Kind of an entry in the remote tree."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class RemoteNode:
    """Snapshot of a remote file or folder.

    Fetched once per traversal step and never cached across runs.
    """

    id: str
    name: str
    kind: NodeKind
    size: Optional[int] = None
    checksum: Optional[str] = None
    mime_type: str = ""

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    @property
    def is_downloadable(self) -> bool:
        """Whether the node has binary content reachable with ``alt=media``.

        Native Google Docs, Sheets, etc. only support export and report
        no size.
        """
        if self.is_directory:
            return False
        return not self.mime_type.startswith(GOOGLE_APPS_MIME_PREFIX)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteNode":
        """Create a RemoteNode from a Drive ``files`` resource.

        Args:
            data: File resource dictionary from the API

        Returns:
            RemoteNode instance
        """
        mime_type = data.get("mimeType", "")
        kind = NodeKind.DIRECTORY if mime_type == FOLDER_MIME_TYPE else NodeKind.FILE

        # Drive serializes int64 fields as strings
        size: Optional[int] = None
        if kind is NodeKind.FILE and data.get("size") is not None:
            size = int(data["size"])

        return cls(
            id=data["id"],
            name=data.get("name", ""),
            kind=kind,
            size=size,
            checksum=data.get("md5Checksum") or None,
            mime_type=mime_type,
        )


@dataclass
class ChildrenPage:
    """One page of a folder listing."""

    nodes: list[RemoteNode] = field(default_factory=list)
    next_page_token: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_page_token)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ChildrenPage":
        """Create a ChildrenPage from a ``files.list`` response."""
        return cls(
            nodes=[RemoteNode.from_api_response(f) for f in data.get("files", [])],
            next_page_token=data.get("nextPageToken") or None,
        )
