"""Utility functions for drivedl."""

import hashlib
import re
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, urlparse

from .exceptions import LocalAccessError

# =============================================================================
# Constants for download operations
# =============================================================================

# Number of files transferred at the same time
DEFAULT_CONCURRENCY: int = 2

# Attempts per file, shared by request and stream failures
DEFAULT_MAX_ATTEMPTS: int = 5

# Wait before retrying a rate-limited or 5xx request (seconds)
DEFAULT_RETRY_DELAY: float = 5.0

# Linear backoff unit after an interrupted stream (seconds * attempt)
DEFAULT_BACKOFF_UNIT: float = 2.0

# Bytes read from a response per iteration (64 KB)
DEFAULT_CHUNK_SIZE: int = 64 * 1024

# Bytes read from disk per iteration while hashing (1 MB)
HASH_CHUNK_SIZE: int = 1024 * 1024

# Characters stripped from remote names before they become path components
FORBIDDEN_FILENAME_CHARS: str = "\"?&*@!'/\\"

# Matches file and folder share links, the id is the second to last group
DRIVE_LINK_REGEX = re.compile(
    r"https://drive\.google\.com/(drive)?/?u?/?\d?/?(mobile)?/?(file)?(folders)?"
    r"/?d?/([-\w]+)[?+]?/?(w+)?"
)


# =============================================================================
# Name and identifier utilities
# =============================================================================


def sanitize_filename(name: str, fallback: str = "") -> str:
    """Strip characters that are illegal or awkward on local filesystems.

    Args:
        name: Remote display name
        fallback: Name to use when nothing usable is left (e.g. the node id)

    Returns:
        Name safe to use as a single path component

    Examples:
        >>> sanitize_filename("what?.txt")
        'what.txt'
        >>> sanitize_filename("Tom's & Jerry's!")
        'Toms  Jerrys'
        >>> sanitize_filename("??", fallback="1AbC")
        '1AbC'
    """
    cleaned = "".join(ch for ch in name if ch not in FORBIDDEN_FILENAME_CHARS)
    cleaned = cleaned.replace("\x00", "").strip()
    if cleaned in ("", ".", ".."):
        return fallback
    return cleaned


def extract_file_id(value: str) -> str:
    """Extract a Drive file or folder id from a share link.

    Bare ids are returned unchanged.

    Args:
        value: Share link, ``open?id=`` link or plain id

    Returns:
        The node id

    Examples:
        >>> extract_file_id("https://drive.google.com/file/d/1AbC-x_9/view")
        '1AbC-x_9'
        >>> extract_file_id("https://drive.google.com/open?id=1AbC")
        '1AbC'
        >>> extract_file_id("1AbC")
        '1AbC'
    """
    match = DRIVE_LINK_REGEX.search(value)
    if match:
        return match.group(len(match.groups()) - 1)

    parsed = urlparse(value)
    if parsed.scheme and parsed.query:
        ids = parse_qs(parsed.query).get("id")
        if ids:
            return ids[0]
    return value


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_md5(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Calculate the hex MD5 digest of a local file.

    Drive reports ``md5Checksum`` for binary content, so this is the
    digest used to decide whether a local copy is complete.

    Args:
        file_path: File to hash
        chunk_size: Bytes read per iteration

    Returns:
        Lowercase hex digest

    Raises:
        LocalAccessError: If the file cannot be read
    """
    digest = hashlib.md5()
    try:
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                digest.update(chunk)
    except OSError as e:
        raise LocalAccessError(f"Cannot hash {file_path}: {e}") from e
    return digest.hexdigest()


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: Optional[int]) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes (None for unknown)

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes is None:
        return "?"
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def format_duration(seconds: float) -> str:
    """Format an elapsed time as ``1h 02m 03s`` / ``2m 03s`` / ``3.2s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"
