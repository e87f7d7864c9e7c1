"""Equality checks between local files and their remote copies."""

import asyncio
import hashlib
import logging
from pathlib import Path

from ..exceptions import ReadError
from ..models import ObjectMetadata
from ..utils import DEFAULT_READ_CHUNK_SIZE, decode_content_md5
from .scanner import LocalFile

logger = logging.getLogger(__name__)


def compute_md5(path: Path, chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> str:
    """Hash a file with MD5 (blocking).

    Args:
        path: File to hash
        chunk_size: Read size per iteration

    Returns:
        Lowercase hex digest
    """
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


class FileComparator:
    """Decides whether a local file matches its remote copy.

    In size mode (the default) only the byte counts are compared. In
    checksum mode the local file is hashed and compared with the digest
    stored remotely.
    """

    def __init__(self, checksum: bool = False):
        """Initialize file comparator.

        Args:
            checksum: Compare MD5 digests instead of sizes
        """
        self.checksum = checksum

    async def compare(self, local_file: LocalFile, metadata: ObjectMetadata) -> bool:
        """Check if the remote object is up to date.

        Args:
            local_file: Local file
            metadata: Metadata of the existing remote object

        Returns:
            True if the remote copy matches, False if it needs an upload

        Raises:
            ReadError: If the local file cannot be read in checksum mode
        """
        if self.checksum:
            return await self._compare_checksum(local_file, metadata)
        return self._compare_size(local_file, metadata)

    def _compare_size(self, local_file: LocalFile, metadata: ObjectMetadata) -> bool:
        try:
            remote_size = int(metadata.size)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            logger.debug(
                "Unusable remote size %r for %s", metadata.size, local_file.remote_path
            )
            return False
        return local_file.size == remote_size

    async def _compare_checksum(
        self, local_file: LocalFile, metadata: ObjectMetadata
    ) -> bool:
        try:
            local_md5 = await asyncio.to_thread(compute_md5, local_file.path)
        except OSError as e:
            raise ReadError(str(local_file.path), e) from e

        try:
            remote_md5 = decode_content_md5(metadata.content_md5)
        except ValueError as e:
            logger.debug("%s: %s", local_file.remote_path, e)
            return False

        logger.debug(
            "md5 %s local=%s remote=%s", local_file.relative_path, local_md5, remote_md5
        )
        return local_md5 == remote_md5
