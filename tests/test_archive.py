"""Tests for ralph.workflow.archive module."""

import json
from datetime import date

import pytest

from ralph.pm import backlog as store
from ralph.pm import progress
from ralph.workflow.archive import (
    ArchiveAction,
    archive_dir_name,
    list_archives,
    maybe_archive,
    read_last_branch,
    write_last_branch,
)

TODAY = date(2026, 10, 19)


@pytest.fixture
def ralph_dir(tmp_path):
    d = tmp_path / "ralph"
    d.mkdir()
    (d / "prd.json").write_text(json.dumps({
        "project": "Demo",
        "source_branch": "ralph/old-feature",
        "total_iterations_used": 7,
        "stories": [{"id": "US-001", "title": "t", "priority": 1, "status": "completed"}],
    }))
    (d / "progress.txt").write_text("# Ralph Progress Log\nStarted: x\n---\nold history\n")
    return d


def archive(ralph_dir, current, stored, auto_archive=True):
    return maybe_archive(
        current_branch=current,
        stored_branch=stored,
        backlog_path=ralph_dir / "prd.json",
        progress_path=ralph_dir / "progress.txt",
        archive_root=ralph_dir / "archive",
        auto_archive=auto_archive,
        today=TODAY,
    )


class TestArchiveDirName:
    def test_strips_prefix(self):
        assert archive_dir_name("ralph/login-form", TODAY) == "2026-10-19-login-form"

    def test_nested_branch(self):
        assert archive_dir_name("feature/auth/login", TODAY) == "2026-10-19-feature-auth-login"


class TestMaybeArchive:
    """Tests for maybe_archive()."""

    def test_same_branch_is_noop(self, ralph_dir):
        result = archive(ralph_dir, "ralph/a", "ralph/a")
        assert result.action == ArchiveAction.NONE
        assert not (ralph_dir / "archive").exists()

    def test_no_stored_branch_is_noop(self, ralph_dir):
        assert archive(ralph_dir, "ralph/a", None).action == ArchiveAction.NONE

    def test_unknown_current_branch_is_noop(self, ralph_dir):
        assert archive(ralph_dir, None, "ralph/a").action == ArchiveAction.NONE

    def test_branch_change_archives(self, ralph_dir):
        result = archive(ralph_dir, "ralph/new-feature", "ralph/old-feature")

        assert result.action == ArchiveAction.ARCHIVED
        assert result.archive_dir == ralph_dir / "archive" / "2026-10-19-old-feature"
        assert (result.archive_dir / "prd.json").exists()
        assert "old history" in (result.archive_dir / "progress.txt").read_text()

    def test_live_files_reset_after_archive(self, ralph_dir):
        archive(ralph_dir, "ralph/new-feature", "ralph/old-feature")

        live = store.load(ralph_dir / "prd.json")
        assert live.source_branch == "ralph/new-feature"
        assert live.total_iterations_used == 0
        assert live.stories[0].status == "completed"
        assert "old history" not in (ralph_dir / "progress.txt").read_text()
        assert progress.read_all(ralph_dir / "progress.txt") == []

    def test_archived_backlog_is_untouched_copy(self, ralph_dir):
        result = archive(ralph_dir, "ralph/new-feature", "ralph/old-feature")
        archived = json.loads((result.archive_dir / "prd.json").read_text())
        assert archived["total_iterations_used"] == 7
        assert archived["source_branch"] == "ralph/old-feature"

    def test_never_overwrites_existing_snapshot(self, ralph_dir):
        first = archive(ralph_dir, "ralph/b", "ralph/a")
        second = archive(ralph_dir, "ralph/c", "ralph/a")
        assert first.archive_dir.name == "2026-10-19-a"
        assert second.archive_dir.name == "2026-10-19-a-2"

    def test_disabled_auto_archive_skips(self, ralph_dir):
        before = (ralph_dir / "progress.txt").read_text()
        result = archive(ralph_dir, "ralph/new", "ralph/old", auto_archive=False)
        assert result.action == ArchiveAction.SKIPPED
        assert (ralph_dir / "progress.txt").read_text() == before
        assert not (ralph_dir / "archive").exists()

    def test_missing_progress_file(self, ralph_dir):
        (ralph_dir / "progress.txt").unlink()
        result = archive(ralph_dir, "ralph/new", "ralph/old")
        assert result.action == ArchiveAction.ARCHIVED
        assert (result.archive_dir / "prd.json").exists()
        assert not (result.archive_dir / "progress.txt").exists()


class TestLastBranch:
    def test_missing(self, tmp_path):
        assert read_last_branch(tmp_path / ".last-branch") is None

    def test_round_trip(self, tmp_path):
        path = tmp_path / ".last-branch"
        write_last_branch(path, "ralph/demo")
        assert read_last_branch(path) == "ralph/demo"

    def test_blank_file(self, tmp_path):
        path = tmp_path / ".last-branch"
        path.write_text("\n")
        assert read_last_branch(path) is None


class TestListArchives:
    def test_empty(self, tmp_path):
        assert list_archives(tmp_path / "archive") == []

    def test_lists_snapshots_sorted(self, ralph_dir):
        archive(ralph_dir, "ralph/b", "ralph/zeta")
        archive(ralph_dir, "ralph/c", "ralph/alpha")
        snapshots = list_archives(ralph_dir / "archive")
        assert [s.name for s in snapshots] == ["2026-10-19-alpha", "2026-10-19-zeta"]
        assert snapshots[0].files == ["prd.json", "progress.txt"]
