"""Sync engine for objsync - one-way local to object store sync."""

from .comparator import FileComparator, compute_md5
from .engine import SyncEngine, SyncOptions, SyncReport
from .operations import SyncOperations
from .paths import map_remote_path
from .queue import BoundedTaskQueue
from .scanner import DirectoryScanner, FileStatus, LocalFile
from .state import RunState

__all__ = [
    "SyncEngine",
    "SyncOptions",
    "SyncReport",
    "SyncOperations",
    "BoundedTaskQueue",
    "DirectoryScanner",
    "FileComparator",
    "FileStatus",
    "LocalFile",
    "RunState",
    "compute_md5",
    "map_remote_path",
]
