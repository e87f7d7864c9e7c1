"""Core sync engine for executing sync operations."""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ..api import ObjectStoreClient
from ..exceptions import NotFoundError, ObjSyncAPIError, ReadError
from ..output import OutputFormatter
from ..utils import (
    DEFAULT_CONCURRENCY,
    DEFAULT_COPIES,
    format_duration,
    format_size,
    normalize_remote_root,
)
from .comparator import FileComparator
from .operations import SyncOperations
from .queue import BoundedTaskQueue
from .scanner import DirectoryScanner, FileStatus, LocalFile
from .state import RunState

logger = logging.getLogger(__name__)

DRY_RUN_MARKER = "[dry-run] "


@dataclass
class SyncOptions:
    """Settings for a single sync run."""

    local_root: Path
    remote_root: str
    concurrency: int = DEFAULT_CONCURRENCY
    copies: int = DEFAULT_COPIES
    checksum: bool = False
    dry_run: bool = False
    delete: bool = False
    delete_only: bool = False
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class SyncReport:
    """Aggregate result of a sync run."""

    total: int
    processed: int
    skipped: int
    comparison_failed: int
    upload_candidates: int
    uploaded: int
    upload_failed: int
    bytes_uploaded: int
    delete_candidates: int
    deleted: int
    delete_failed: int
    errors: list[str]
    stage_timings: dict[str, float]
    elapsed: float
    dry_run: bool = False

    @property
    def exit_code(self) -> int:
        """0 if the run recorded no error, 1 otherwise."""
        return 1 if self.errors else 0

    @classmethod
    def from_state(cls, state: RunState, dry_run: bool = False) -> "SyncReport":
        return cls(
            total=state.total,
            processed=state.processed_count,
            skipped=state.up_to_date_count,
            comparison_failed=state.comparison_failed_count,
            upload_candidates=len(state.upload_candidates),
            uploaded=state.uploaded_count,
            upload_failed=state.upload_failed_count,
            bytes_uploaded=state.bytes_uploaded,
            delete_candidates=len(state.delete_candidates),
            deleted=state.deleted_count,
            delete_failed=state.delete_failed_count,
            errors=list(state.errors),
            stage_timings=dict(state.stage_timings),
            elapsed=state.elapsed,
            dry_run=dry_run,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["exit_code"] = self.exit_code
        return data


class SyncEngine:
    """Orchestrates a one-way sync from a local directory to the store.

    Stages run strictly one after another, each as a bounded queue that
    drains before the next starts:

    1. scan the local tree
    2. compare every local file with its remote copy
    3. upload the files that are missing or different
    4. optionally delete remote objects that have no local counterpart

    Per-file failures are recorded and the run continues. The client is
    closed exactly once when ``run`` returns or raises.
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        options: SyncOptions,
        output: Optional[OutputFormatter] = None,
        scanner: Optional[DirectoryScanner] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Object store client
            options: Run settings
            output: Output formatter for displaying progress/status
            scanner: Local directory scanner
        """
        self.client = client
        self.options = options
        self.output = output or OutputFormatter()
        self.scanner = scanner or DirectoryScanner()
        self.comparator = FileComparator(checksum=options.checksum)
        self.operations = SyncOperations(
            client,
            dry_run=options.dry_run,
            copies=options.copies,
            headers=options.headers,
        )
        self.remote_root = normalize_remote_root(options.remote_root)
        self.state = RunState()
        self.local_files: list[LocalFile] = []
        self._queues: dict[str, BoundedTaskQueue] = {}
        self._client_closed = False

    # =========================
    # Orchestration
    # =========================

    async def run(self) -> SyncReport:
        """Run the sync.

        Returns:
            SyncReport with counters and recorded errors

        Raises:
            ValueError: If the local root is missing or not a directory
        """
        try:
            self._validate_local_root()

            if not self.output.quiet:
                self.output.info(
                    f"Syncing: {self.options.local_root} -> {self.remote_root}"
                )
                if self.options.dry_run:
                    self.output.info("Dry run: No changes will be made")

            await self._scan()
            if not self.local_files:
                self.output.warning("No local files found, nothing to sync")
                return self._finish()

            if self.options.delete_only:
                await self._reconcile()
                return self._finish()

            await self._compare()

            if self.state.upload_candidates:
                await self._upload()
            else:
                self.output.info("All files are up to date")

            if self.options.delete:
                await self._reconcile()

            return self._finish()
        finally:
            await self._close_client()

    def _validate_local_root(self) -> None:
        local_root = self.options.local_root
        if not local_root.exists():
            raise ValueError(f"Local directory does not exist: {local_root}")
        if not local_root.is_dir():
            raise ValueError(f"Local path is not a directory: {local_root}")

    async def _close_client(self) -> None:
        if self._client_closed:
            return
        self._client_closed = True
        await self.client.close()

    async def _run_queue(
        self,
        name: str,
        worker: Callable,
        items: list,
        on_crash: Callable[[Any, Exception], Any],
    ) -> None:
        """Run a stage queue and record worker exceptions it caught.

        Workers record their expected failures themselves. Anything that
        escaped a worker is passed to ``on_crash`` so it still counts as a
        failure of that item.
        """
        queue: BoundedTaskQueue = BoundedTaskQueue(
            worker, self.options.concurrency, name=name
        )
        self._queues[name] = queue
        results = await queue.run_all(items)
        for item, result in zip(items, results):
            if isinstance(result, Exception):
                on_crash(item, result)

    @property
    def _marker(self) -> str:
        return DRY_RUN_MARKER if self.options.dry_run else ""

    def status(self) -> dict[str, Any]:
        """Snapshot of the run for operator introspection.

        Read-only: it never pauses or alters a running queue.
        """
        state = self.state
        in_flight = {
            name: [self._describe(item) for item in queue.in_flight]
            for name, queue in self._queues.items()
            if queue.running
        }
        return {
            "stage": state.current_stage,
            "elapsed": round(state.elapsed, 3),
            "total": state.total,
            "processed": state.processed_count,
            "up_to_date": state.up_to_date_count,
            "upload_candidates": len(state.upload_candidates),
            "uploaded": state.uploaded_count,
            "upload_failed": state.upload_failed_count,
            "delete_candidates": len(state.delete_candidates),
            "deleted": state.deleted_count,
            "delete_failed": state.delete_failed_count,
            "errors": len(state.errors),
            "in_flight": in_flight,
        }

    @staticmethod
    def _describe(item: Any) -> str:
        if isinstance(item, LocalFile):
            return item.relative_path
        return str(item)

    # =========================
    # Stages
    # =========================

    async def _scan(self) -> None:
        with self.state.stage("scan"):
            self.local_files = await self.scanner.scan(
                self.options.local_root, self.remote_root
            )
        self.state.total = len(self.local_files)
        logger.debug(
            "Local scan took %.2fs for %d files",
            self.state.stage_timings["scan"],
            self.state.total,
        )
        if not self.output.quiet:
            self.output.info(f"Found {self.state.total} local file(s)")

    async def _compare(self) -> None:
        with self.state.stage("compare"):
            await self._run_queue(
                "compare",
                self._compare_file,
                self.local_files,
                lambda f, e: self._comparison_failed(
                    f, type(e).__name__, f"{f.remote_path}: {e}"
                ),
            )
        logger.debug(
            "Comparison finished: %d candidate(s), %d error(s)",
            len(self.state.upload_candidates),
            self.state.comparison_failed_count,
        )

    async def _upload(self) -> None:
        candidates = list(self.state.upload_candidates)
        if not self.output.quiet:
            self.output.info(f"{self._marker}Uploading {len(candidates)} file(s)")
        with self.state.stage("upload"):
            await self._run_queue(
                "upload",
                self._upload_file,
                candidates,
                lambda f, e: self._upload_failed(
                    f, type(e).__name__, f"{f.path}: {e}"
                ),
            )

    async def _reconcile(self) -> None:
        with self.state.stage("delete"):
            candidates = await self._find_orphans()
            if candidates is None:
                return
            self.state.delete_candidates = candidates
            if not candidates:
                self.output.info("No remote orphans to delete")
                return
            if not self.output.quiet:
                self.output.info(
                    f"{self._marker}Deleting {len(candidates)} remote object(s)"
                )
            await self._run_queue(
                "delete",
                self._delete_object,
                candidates,
                lambda path, e: self._delete_failed(
                    type(e).__name__, f"{path}: {e}"
                ),
            )

    # =========================
    # Workers
    # =========================

    async def _compare_file(self, local_file: LocalFile) -> FileStatus:
        """Classify one local file against its remote copy."""
        try:
            metadata = await self.client.info(local_file.remote_path)
        except NotFoundError:
            return self._needs_upload(local_file, "new file")
        except ObjSyncAPIError as e:
            return self._comparison_failed(local_file, e.error_code, str(e))

        if metadata.is_directory:
            return self._comparison_failed(
                local_file,
                "IsDirectory",
                f"{local_file.remote_path}: remote path is a directory",
            )

        try:
            up_to_date = await self.comparator.compare(local_file, metadata)
        except ReadError as e:
            return self._comparison_failed(local_file, e.error_code, str(e))

        if up_to_date:
            local_file.status = FileStatus.UP_TO_DATE
            self.state.mark_up_to_date()
            done = self.state.mark_processed()
            if not self.output.quiet:
                self.output.info(
                    f"= {local_file.relative_path}: up to date "
                    f"({done}/{self.state.total})"
                )
            return local_file.status

        reason = "checksum differs" if self.options.checksum else "size differs"
        return self._needs_upload(local_file, reason)

    def _needs_upload(self, local_file: LocalFile, reason: str) -> FileStatus:
        local_file.status = FileStatus.NEEDS_UPLOAD
        self.state.add_upload_candidate(local_file)
        done = self.state.mark_processed()
        if not self.output.quiet:
            self.output.info(
                f"↑ {local_file.relative_path}: {reason} ({done}/{self.state.total})"
            )
        return local_file.status

    def _comparison_failed(
        self, local_file: LocalFile, code: str, message: str
    ) -> FileStatus:
        local_file.status = FileStatus.COMPARISON_ERROR
        done = self.state.mark_processed()
        error = f"compare failed ({done}/{self.state.total}): [{code}] {message}"
        self.state.mark_comparison_failed(error)
        self.output.error(error)
        return local_file.status

    async def _upload_file(self, local_file: LocalFile) -> FileStatus:
        """Upload one candidate file."""
        total = len(self.state.upload_candidates)
        try:
            await self.operations.upload_file(local_file)
        except (ReadError, ObjSyncAPIError) as e:
            return self._upload_failed(local_file, e.error_code, str(e))

        local_file.status = FileStatus.UPLOADED
        done = self.state.mark_uploaded(local_file.size)
        if not self.output.quiet:
            self.output.info(
                f"{self._marker}↑ uploaded {local_file.relative_path} -> "
                f"{local_file.remote_path} ({format_size(local_file.size)}) "
                f"({done}/{total})"
            )
        return local_file.status

    def _upload_failed(
        self, local_file: LocalFile, code: str, message: str
    ) -> FileStatus:
        local_file.status = FileStatus.UPLOAD_FAILED
        total = len(self.state.upload_candidates)
        done = self.state.upload_failed_count + self.state.uploaded_count + 1
        error = f"upload failed ({done}/{total}): [{code}] {message}"
        self.state.mark_upload_failed(error)
        self.output.error(error)
        return local_file.status

    async def _find_orphans(self) -> Optional[list[str]]:
        """List the remote tree and collect objects missing locally.

        Returns:
            Remote paths without a local counterpart, or None when the
            listing failed and deletion must be skipped
        """
        local_paths = {f.remote_path for f in self.local_files}
        candidates: list[str] = []
        try:
            async for entry in self.client.list_tree(
                self.remote_root, concurrency=self.options.concurrency
            ):
                if entry.is_object and entry.remote_path not in local_paths:
                    candidates.append(entry.remote_path)
        except NotFoundError:
            logger.info("Remote directory %s does not exist", self.remote_root)
            self.output.info(f"Remote directory {self.remote_root} does not exist")
            return []
        except ObjSyncAPIError as e:
            error = f"list {self.remote_root} failed: [{e.error_code}] {e}"
            self.state.record_error(error)
            self.output.error(error)
            self.output.warning("Skipping remote deletion")
            return None

        logger.debug("Found %d remote orphan(s)", len(candidates))
        return candidates

    async def _delete_object(self, remote_path: str) -> bool:
        """Delete one remote orphan."""
        total = len(self.state.delete_candidates)
        try:
            await self.operations.delete_remote(remote_path)
        except ObjSyncAPIError as e:
            return self._delete_failed(e.error_code, str(e))

        done = self.state.mark_deleted()
        if not self.output.quiet:
            self.output.info(f"{self._marker}✗ deleted {remote_path} ({done}/{total})")
        return True

    def _delete_failed(self, code: str, message: str) -> bool:
        total = len(self.state.delete_candidates)
        done = self.state.deleted_count + self.state.delete_failed_count + 1
        error = f"delete failed ({done}/{total}): [{code}] {message}"
        self.state.mark_delete_failed(error)
        self.output.error(error)
        return False

    # =========================
    # Reporting
    # =========================

    def _finish(self) -> SyncReport:
        report = SyncReport.from_state(self.state, dry_run=self.options.dry_run)
        self._display_summary(report)
        return report

    def _display_summary(self, report: SyncReport) -> None:
        """Display sync summary.

        Args:
            report: Final report of the run
        """
        rows = [
            ("Local files", str(report.total)),
            ("Compared", f"{report.processed}/{report.total}"),
            ("Up to date", str(report.skipped)),
            ("Comparison errors", str(report.comparison_failed)),
            (
                "Uploaded",
                f"{report.uploaded}/{report.upload_candidates} "
                f"({format_size(report.bytes_uploaded)})",
            ),
            ("Upload errors", str(report.upload_failed)),
            ("Deleted", f"{report.deleted}/{report.delete_candidates}"),
            ("Delete errors", str(report.delete_failed)),
        ]
        for stage, seconds in report.stage_timings.items():
            rows.append((f"Time ({stage})", format_duration(seconds)))
        rows.append(("Time (total)", format_duration(report.elapsed)))

        self.output.print("")
        title = "Dry run summary" if report.dry_run else "Sync summary"
        self.output.print_summary(title, rows)

        if report.errors:
            self.output.error(f"{len(report.errors)} error(s):")
            for error in report.errors:
                self.output.error(f"  {error}")
        elif report.dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")
