"""Decide whether a local file already holds a remote file's content."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import LocalAccessError
from ..utils import calculate_md5

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifyResult:
    """Outcome of checking a local path against a remote checksum."""

    complete: bool
    """True if the local file matches the remote checksum"""

    valid_bytes: int
    """Bytes already present locally, used as the resume offset"""


class LocalFileVerifier:
    """Compare local files with remote MD5 checksums.

    A local file that does not match is treated as a partial download, not a
    corrupted one: its full length becomes the resume offset. A different
    file that happens to share the name will therefore be extended rather
    than replaced.
    """

    def verify(self, local_path: Path, remote_checksum: Optional[str]) -> VerifyResult:
        """Check whether ``local_path`` is a complete copy.

        Args:
            local_path: Target path of the download
            remote_checksum: Hex MD5 reported by Drive, or None

        Returns:
            VerifyResult with completion flag and resume offset

        Raises:
            LocalAccessError: If the path cannot be stat'ed or hashed
        """
        try:
            if not local_path.exists():
                return VerifyResult(complete=False, valid_bytes=0)
            if not local_path.is_file():
                raise LocalAccessError(f"{local_path} exists and is not a file")
            local_size = local_path.stat().st_size
        except OSError as e:
            raise LocalAccessError(f"Cannot stat {local_path}: {e}") from e

        if not remote_checksum:
            return VerifyResult(complete=False, valid_bytes=local_size)

        logger.debug(f"Calculating MD5 of {local_path}")
        local_checksum = calculate_md5(local_path)
        if local_checksum == remote_checksum.lower():
            return VerifyResult(complete=True, valid_bytes=local_size)
        return VerifyResult(complete=False, valid_bytes=local_size)
