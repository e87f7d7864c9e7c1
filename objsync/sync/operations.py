"""Upload and delete operations used by the sync stages."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import BinaryIO, Optional

from ..api import ObjectStoreClient
from ..exceptions import ReadError
from ..utils import DEFAULT_COPIES, DEFAULT_READ_CHUNK_SIZE
from .scanner import LocalFile

logger = logging.getLogger(__name__)


class SyncOperations:
    """Remote mutations with dry-run support.

    In dry-run mode no file is opened and no request is sent; the
    operations return as if they had succeeded.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        dry_run: bool = False,
        copies: int = DEFAULT_COPIES,
        headers: Optional[dict[str, str]] = None,
        chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
    ):
        """Initialize sync operations.

        Args:
            client: Object store client
            dry_run: Skip every remote call
            copies: Number of copies the store should keep of uploads
            headers: Extra headers sent with every upload
            chunk_size: Read size for streamed uploads
        """
        self.client = client
        self.dry_run = dry_run
        self.copies = copies
        self.headers = dict(headers or {})
        self.chunk_size = chunk_size

    async def _read_chunks(
        self, f: BinaryIO, local_file: LocalFile
    ) -> AsyncIterator[bytes]:
        """Stream at most ``local_file.size`` bytes of an open file from the start.

        Raises:
            ReadError: If reading the file fails mid-stream
        """
        remaining = local_file.size
        try:
            await asyncio.to_thread(f.seek, 0)
        except OSError as e:
            raise ReadError(str(local_file.path), e) from e
        while remaining > 0:
            try:
                chunk = await asyncio.to_thread(
                    f.read, min(self.chunk_size, remaining)
                )
            except OSError as e:
                raise ReadError(str(local_file.path), e) from e
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk

    async def upload_file(self, local_file: LocalFile) -> None:
        """Upload a local file to its remote path.

        Args:
            local_file: File to upload

        Raises:
            ReadError: If the local file cannot be opened or read
            UploadError: If the upload fails
        """
        if self.dry_run:
            logger.debug("Dry run: not uploading %s", local_file.relative_path)
            return

        try:
            f = await asyncio.to_thread(open, local_file.path, "rb")
        except OSError as e:
            raise ReadError(str(local_file.path), e) from e

        try:
            await self.client.put(
                local_file.remote_path,
                lambda: self._read_chunks(f, local_file),
                size=local_file.size,
                copies=self.copies,
                headers=self.headers,
            )
        finally:
            f.close()

    async def delete_remote(self, remote_path: str) -> None:
        """Delete a remote object.

        Raises:
            DeleteError: If the deletion fails
        """
        if self.dry_run:
            logger.debug("Dry run: not deleting %s", remote_path)
            return
        await self.client.unlink(remote_path)
