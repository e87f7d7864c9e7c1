"""Unit tests for run state tracking and the sync report."""

from pathlib import Path

from objsync.sync import RunState, SyncReport
from objsync.sync.scanner import LocalFile


def make_local_file(name: str, size: int = 1) -> LocalFile:
    return LocalFile(
        path=Path("/data") / name,
        relative_path=name,
        size=size,
        mtime=0.0,
        remote_path=f"/stor/{name}",
    )


class TestRunState:
    """Tests for RunState counters."""

    def test_initial_state(self):
        state = RunState()
        assert state.total == 0
        assert state.errors == []
        assert state.current_stage is None

    def test_comparison_counters(self):
        state = RunState(total=3)
        state.mark_up_to_date()
        assert state.mark_processed() == 1
        state.add_upload_candidate(make_local_file("a"))
        assert state.mark_processed() == 2
        state.mark_comparison_failed("compare failed (3/3): [500] boom")
        assert state.mark_processed() == 3

        assert state.up_to_date_count == 1
        assert len(state.upload_candidates) == 1
        assert state.comparison_failed_count == 1
        assert state.errors == ["compare failed (3/3): [500] boom"]

    def test_upload_counters(self):
        state = RunState()
        assert state.mark_uploaded(10) == 1
        assert state.mark_upload_failed("upload failed") == 2
        assert state.mark_uploaded(5) == 3
        assert state.uploaded_count == 2
        assert state.upload_failed_count == 1
        assert state.bytes_uploaded == 15

    def test_delete_counters(self):
        state = RunState()
        assert state.mark_deleted() == 1
        assert state.mark_delete_failed("delete failed") == 2
        assert state.deleted_count == 1
        assert state.delete_failed_count == 1
        assert state.errors == ["delete failed"]

    def test_errors_keep_order(self):
        state = RunState()
        for message in ("one", "two", "three"):
            state.record_error(message)
        assert state.errors == ["one", "two", "three"]

    def test_stage_records_timing(self):
        state = RunState()
        with state.stage("compare"):
            assert state.current_stage == "compare"
        assert state.current_stage is None
        assert state.stage_timings["compare"] >= 0

    def test_stage_timing_recorded_on_error(self):
        state = RunState()
        try:
            with state.stage("upload"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert "upload" in state.stage_timings


class TestSyncReport:
    """Tests for SyncReport."""

    def test_from_state(self):
        state = RunState(total=2)
        state.mark_up_to_date()
        state.mark_processed()
        state.add_upload_candidate(make_local_file("a", size=7))
        state.mark_processed()
        state.mark_uploaded(7)
        state.delete_candidates = ["/stor/x"]
        state.mark_deleted()

        report = SyncReport.from_state(state, dry_run=True)

        assert report.total == 2
        assert report.processed == 2
        assert report.skipped == 1
        assert report.upload_candidates == 1
        assert report.uploaded == 1
        assert report.bytes_uploaded == 7
        assert report.delete_candidates == 1
        assert report.deleted == 1
        assert report.dry_run is True
        assert report.exit_code == 0

    def test_exit_code_reflects_errors(self):
        state = RunState()
        state.record_error("list /stor failed: [500] boom")
        report = SyncReport.from_state(state)
        assert report.exit_code == 1
        assert report.to_dict()["exit_code"] == 1
        assert report.to_dict()["errors"] == ["list /stor failed: [500] boom"]
