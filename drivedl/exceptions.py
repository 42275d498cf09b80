"""Exceptions raised by drivedl."""

from typing import Optional


class DriveError(Exception):
    """Base exception for all drivedl errors."""


class DriveConfigError(DriveError):
    """Configuration is missing or invalid (e.g. no access token)."""


class LocalAccessError(DriveError):
    """A local file or directory could not be opened, read, hashed or created."""


class DriveAPIError(DriveError):
    """Base exception for errors reported by or while talking to Google Drive."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DriveNetworkError(DriveAPIError):
    """Connection-level failure (DNS, TLS, reset, timeout, truncated body)."""


class DriveInvalidResponseError(DriveAPIError):
    """The server answered with something we cannot use."""


class RemoteListError(DriveAPIError):
    """A page of a folder listing could not be fetched."""


class RemoteTransferError(DriveAPIError):
    """Base exception for failures of a file content request."""


class RateLimitedError(RemoteTransferError):
    """The API asked us to slow down (429 or a rate-limit 403)."""


class ServerError(RemoteTransferError):
    """The API failed with a 5xx status."""


class ClientError(RemoteTransferError):
    """Non-retryable 4xx failure."""


class DriveAuthenticationError(ClientError):
    """The access token was rejected."""


class DrivePermissionError(ClientError):
    """The token is valid but may not access the resource."""


class DriveNotFoundError(ClientError):
    """The requested file or folder does not exist."""


class RetriesExhaustedError(RemoteTransferError):
    """A transfer kept failing until the attempt cap was reached."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts
