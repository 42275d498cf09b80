"""drivedl - resumable bulk downloader for Google Drive files and folders."""

from .api import DriveClient
from .download import DownloadEngine
from .exceptions import (
    ClientError,
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    LocalAccessError,
    RateLimitedError,
    RemoteListError,
    RemoteTransferError,
    RetriesExhaustedError,
    ServerError,
)
from .models import NodeKind, RemoteNode
from .utils import extract_file_id, sanitize_filename

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "DriveClient",
    "DownloadEngine",
    "NodeKind",
    "RemoteNode",
    "DriveError",
    "DriveConfigError",
    "LocalAccessError",
    "DriveAPIError",
    "DriveNetworkError",
    "DriveInvalidResponseError",
    "RemoteListError",
    "RemoteTransferError",
    "RateLimitedError",
    "ServerError",
    "ClientError",
    "DriveAuthenticationError",
    "DrivePermissionError",
    "DriveNotFoundError",
    "RetriesExhaustedError",
    "extract_file_id",
    "sanitize_filename",
]
