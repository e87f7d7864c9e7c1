"""Local directory scanning for sync operations."""

import asyncio
import logging
import os
import stat
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..exceptions import EnumerationSkip
from .paths import map_remote_path

logger = logging.getLogger(__name__)


class FileStatus(str, Enum):
    """Classification of a local file during a sync run."""

    DISCOVERED = "discovered"
    """Found locally, not compared yet"""

    UP_TO_DATE = "up_to_date"
    """Remote copy is the same, nothing to do"""

    NEEDS_UPLOAD = "needs_upload"
    """Remote copy is missing or different"""

    COMPARISON_ERROR = "comparison_error"
    """Remote lookup or local read failed"""

    UPLOADED = "uploaded"
    """Upload finished (or would have, in a dry run)"""

    UPLOAD_FAILED = "upload_failed"
    """Upload could not be completed"""


@dataclass
class LocalFile:
    """Represents a local file taking part in a sync run."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Path below the local root, with forward slashes"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    remote_path: str
    """Target path in the object store"""

    status: FileStatus = FileStatus.DISCOVERED
    """Current classification"""

    @classmethod
    def from_stat(
        cls,
        file_path: Path,
        file_stat: os.stat_result,
        local_root: Path,
        remote_root: str,
    ) -> "LocalFile":
        """Create LocalFile from a path and its stat result.

        Raises:
            PathMappingError: If the file is not below ``local_root``
        """
        relative_path, remote_path = map_remote_path(local_root, remote_root, file_path)
        return cls(
            path=file_path,
            relative_path=relative_path,
            size=file_stat.st_size,
            mtime=file_stat.st_mtime,
            remote_path=remote_path,
        )


class DirectoryScanner:
    """Walks a local directory tree and yields its regular files.

    Symbolic links and special files are skipped, never followed.
    Directories or files that cannot be read are logged and skipped.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = asyncio.run(scanner.scan(Path("/sync/folder"), "/stor/folder"))
    """

    def _read_directory(
        self, directory: Path
    ) -> tuple[list[tuple[Path, os.stat_result]], list[Path]]:
        """List one directory (blocking).

        Returns:
            Tuple of (regular files with their stat, subdirectories),
            both sorted by name
        """
        files: list[tuple[Path, os.stat_result]] = []
        subdirs: list[Path] = []

        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)

        for entry in entries:
            entry_path = directory / entry.name
            try:
                entry_stat = entry.stat(follow_symlinks=False)
            except OSError as e:
                logger.warning("Skipping %s: %s", entry_path, e)
                continue

            mode = entry_stat.st_mode
            if stat.S_ISDIR(mode):
                subdirs.append(entry_path)
            elif stat.S_ISREG(mode):
                files.append((entry_path, entry_stat))
            else:
                logger.debug("Skipping non-regular file: %s", entry_path)

        return files, subdirs

    async def walk(self, root: Path) -> AsyncIterator[tuple[Path, os.stat_result]]:
        """Recursively walk a directory.

        Every call starts a fresh walk. Blocking directory reads run in a
        worker thread so the event loop stays responsive.

        Args:
            root: Directory to walk

        Yields:
            (absolute path, stat result) for every regular file
        """
        stack = [root]
        while stack:
            directory = stack.pop()
            try:
                files, subdirs = await asyncio.to_thread(
                    self._read_directory, directory
                )
            except OSError as e:
                logger.warning("Skipping directory %s: %s", directory, e)
                continue

            for item in files:
                yield item

            # Reversed so the stack pops subdirectories in name order
            stack.extend(reversed(subdirs))

    async def scan(self, local_root: Path, remote_root: str) -> list[LocalFile]:
        """Scan a local directory into LocalFile records.

        Args:
            local_root: Local sync root
            remote_root: Remote sync root

        Returns:
            List of LocalFile objects, one per regular file
        """
        local_root = local_root.absolute()
        files: list[LocalFile] = []

        async for file_path, file_stat in self.walk(local_root):
            try:
                files.append(
                    LocalFile.from_stat(file_path, file_stat, local_root, remote_root)
                )
            except EnumerationSkip as e:
                logger.warning("Excluding %s: %s", file_path, e)

        return files
