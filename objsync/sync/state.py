"""Run-scoped counters and error tracking for a sync run.

All mutating methods are plain (non-async) functions. Under the asyncio
scheduler they run to completion without interleaving, which serializes
every increment and append made by concurrent workers.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .scanner import LocalFile


@dataclass
class RunState:
    """Counters, candidates and errors accumulated during one run."""

    total: int = 0
    """Number of local files taking part in the run"""

    processed_count: int = 0
    up_to_date_count: int = 0
    comparison_failed_count: int = 0

    upload_candidates: list[LocalFile] = field(default_factory=list)
    uploaded_count: int = 0
    upload_failed_count: int = 0
    bytes_uploaded: int = 0

    delete_candidates: list[str] = field(default_factory=list)
    deleted_count: int = 0
    delete_failed_count: int = 0

    errors: list[str] = field(default_factory=list)
    """Human-readable failure descriptions, in the order they occurred"""

    stage_timings: dict[str, float] = field(default_factory=dict)
    """Elapsed seconds per finished stage"""

    current_stage: Optional[str] = None
    started_at: float = field(default_factory=time.monotonic)

    def record_error(self, message: str) -> None:
        """Append a failure description."""
        self.errors.append(message)

    def mark_processed(self) -> int:
        """Count one compared file and return the new progress count."""
        self.processed_count += 1
        return self.processed_count

    def mark_up_to_date(self) -> None:
        self.up_to_date_count += 1

    def mark_comparison_failed(self, message: str) -> None:
        self.comparison_failed_count += 1
        self.record_error(message)

    def add_upload_candidate(self, local_file: LocalFile) -> None:
        self.upload_candidates.append(local_file)

    def mark_uploaded(self, size: int) -> int:
        """Count one finished upload and return the upload progress count."""
        self.uploaded_count += 1
        self.bytes_uploaded += size
        return self.uploaded_count + self.upload_failed_count

    def mark_upload_failed(self, message: str) -> int:
        self.upload_failed_count += 1
        self.record_error(message)
        return self.uploaded_count + self.upload_failed_count

    def mark_deleted(self) -> int:
        self.deleted_count += 1
        return self.deleted_count + self.delete_failed_count

    def mark_delete_failed(self, message: str) -> int:
        self.delete_failed_count += 1
        self.record_error(message)
        return self.deleted_count + self.delete_failed_count

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Track the current stage and its elapsed time."""
        self.current_stage = name
        start = time.monotonic()
        try:
            yield
        finally:
            self.stage_timings[name] = time.monotonic() - start
            self.current_stage = None

    @property
    def elapsed(self) -> float:
        """Seconds since the run started."""
        return time.monotonic() - self.started_at
