"""API client for Google Drive (v3 REST)."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from .config import config
from .exceptions import (
    ClientError,
    DriveAPIError,
    DriveAuthenticationError,
    DriveConfigError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    RateLimitedError,
    RemoteListError,
    ServerError,
)
from .models import NODE_FIELDS, ChildrenPage, RemoteNode
from .utils import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


def _error_details(response: httpx.Response) -> tuple[str, set[str]]:
    """Pull the message and reason codes out of a Drive error body.

    Args:
        response: Failed response (body already read)

    Returns:
        Tuple of (message, reasons); empty when the body is not a Drive error
    """
    try:
        data = response.json()
    except ValueError:
        return response.text[:200], set()

    error = data.get("error") if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return str(error or ""), set()

    reasons = {
        item.get("reason", "")
        for item in error.get("errors", [])
        if isinstance(item, dict)
    }
    return str(error.get("message", "")), reasons


def error_for_response(response: httpx.Response) -> DriveAPIError:
    """Map a failed response onto the drivedl error taxonomy.

    Rate limiting is detected from the status (429) as well as from the
    reason codes and message text Drive sends with a 403.

    Args:
        response: Response with a 4xx or 5xx status, body already read

    Returns:
        Exception instance to raise
    """
    status_code = response.status_code
    message, reasons = _error_details(response)
    detail = f": {message}" if message else ""

    if (
        status_code == 429
        or reasons & RATE_LIMIT_REASONS
        or "rate limit" in message.lower()
    ):
        return RateLimitedError(f"Rate limit exceeded{detail}", status_code)
    if 500 <= status_code < 600:
        return ServerError(f"Server error {status_code}{detail}", status_code)
    if status_code == 401:
        return DriveAuthenticationError(
            f"Invalid or expired access token{detail}", status_code
        )
    if status_code == 403:
        return DrivePermissionError(f"Access forbidden{detail}", status_code)
    if status_code == 404:
        return DriveNotFoundError(f"Not found{detail}", status_code)
    return ClientError(f"Request failed with status {status_code}{detail}", status_code)


class RangeStream:
    """Body of a file content response.

    Wraps the httpx response so callers only ever see drivedl errors.
    """

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def content_length(self) -> int | None:
        value = self._response.headers.get("Content-Length")
        return int(value) if value and value.isdigit() else None

    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield body chunks of at most ``chunk_size`` bytes.

        Chunks are passed on as they arrive, so everything received before
        a broken connection reaches the caller.

        Raises:
            DriveNetworkError: If the connection breaks mid-body
        """
        try:
            for data in self._response.iter_bytes():
                for pos in range(0, len(data), chunk_size):
                    yield data[pos : pos + chunk_size]
        except (httpx.TransportError, httpx.StreamError) as e:
            raise DriveNetworkError(f"Stream interrupted: {e}") from e


class DriveClient:
    """Client for the parts of the Google Drive API needed to mirror a tree."""

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the Drive API client.

        Args:
            access_token: OAuth access token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Retries for metadata and listing calls (default: 3)
            retry_delay: Initial delay between those retries in seconds
            timeout: Request timeout in seconds (default: 60.0)
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token or config.access_token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if not self.access_token:
            raise DriveConfigError(
                "Access token not configured. "
                "Please set DRIVEDL_ACCESS_TOKEN or pass --token."
            )

        self._client: httpx.Client | None = None

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make a JSON API request with retry logic.

        Network errors, rate limiting and 5xx responses are retried with
        exponential backoff; everything else is raised immediately.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            DriveAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    logger.debug("%s %s network error (%s), retrying", method, endpoint, e)
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise DriveNetworkError(f"Network error: {e}") from e

            if response.is_error:
                error = error_for_response(response)
                retryable = isinstance(error, (RateLimitedError, ServerError))
                if retryable and attempt < self.max_retries:
                    retry_after = response.headers.get("Retry-After")
                    if retry_after and retry_after.isdigit():
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        "%s %s failed (%s), retrying in %.1fs",
                        method,
                        endpoint,
                        error,
                        delay,
                    )
                    time.sleep(delay)
                    continue
                raise error

            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise DriveInvalidResponseError(
                    "Invalid JSON response from server", response.status_code
                ) from e

        # Only reachable with max_retries < 0
        raise DriveAPIError("Request failed after all retry attempts")

    # =========================
    # Metadata and listing
    # =========================

    def get_metadata(self, node_id: str) -> RemoteNode:
        """Get a single file or folder by id.

        Args:
            node_id: Drive file id

        Returns:
            RemoteNode snapshot
        """
        data = self._request(
            "GET",
            f"/files/{node_id}",
            params={"fields": NODE_FIELDS, "supportsAllDrives": "true"},
        )
        return RemoteNode.from_api_response(data)

    def list_children_page(
        self,
        dir_id: str,
        page_token: str | None = None,
        page_size: int = 1000,
    ) -> ChildrenPage:
        """Get one page of the children of a folder.

        Folders are ordered first; order within a page is whatever Drive
        returns.

        Args:
            dir_id: Folder id
            page_token: Continuation token from the previous page
            page_size: Entries per page (Drive caps this at 1000)

        Returns:
            ChildrenPage with the nodes and the next page token

        Raises:
            RemoteListError: If the page cannot be fetched
        """
        params: dict[str, Any] = {
            "q": f"'{dir_id}' in parents and trashed = false",
            "orderBy": "folder",
            "pageSize": page_size,
            "fields": f"nextPageToken,files({NODE_FIELDS})",
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        if page_token:
            params["pageToken"] = page_token

        try:
            data = self._request("GET", "/files", params=params)
        except DriveAPIError as e:
            raise RemoteListError(
                f"Failed to list folder {dir_id}: {e}", e.status_code
            ) from e
        return ChildrenPage.from_api_response(data)

    # =========================
    # Content
    # =========================

    @contextmanager
    def open_range_stream(
        self,
        file_id: str,
        start: int,
        size: int | None,
        acknowledge_abuse: bool = False,
    ) -> Iterator[RangeStream]:
        """Open a streaming request for bytes ``[start, size)`` of a file.

        No retries happen here; the caller owns the retry policy.

        Args:
            file_id: Drive file id
            start: First byte wanted (0 for a full download)
            size: Total remote size, None if unknown
            acknowledge_abuse: Pass ``acknowledgeAbuse=true`` for files Drive
                flagged as malware or spam

        Yields:
            RangeStream positioned at ``start``

        Raises:
            RateLimitedError, ServerError: Retryable request failures
            ClientError: Non-retryable 4xx failures
            DriveNetworkError: Connection failures before the body starts
            DriveInvalidResponseError: Server ignored the range on a resume
        """
        url = f"{self.api_url}/files/{file_id}"
        params: dict[str, Any] = {"alt": "media", "supportsAllDrives": "true"}
        if acknowledge_abuse:
            params["acknowledgeAbuse"] = "true"

        headers: dict[str, str] = {}
        if size is not None and size > 0:
            headers["Range"] = f"bytes={start}-{size - 1}"
        elif start > 0:
            headers["Range"] = f"bytes={start}-"

        client = self._get_client()
        try:
            with client.stream("GET", url, params=params, headers=headers) as response:
                if response.is_error:
                    response.read()
                    raise error_for_response(response)
                if start > 0 and response.status_code != 206:
                    raise DriveInvalidResponseError(
                        f"Expected 206 Partial Content for resumed download, "
                        f"got {response.status_code}",
                        response.status_code,
                    )
                yield RangeStream(response)
        except httpx.RequestError as e:
            raise DriveNetworkError(f"Network error during download: {e}") from e
