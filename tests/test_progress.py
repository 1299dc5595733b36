"""Tests for ralph.pm.progress module."""

from datetime import datetime

import pytest

from ralph.pm import progress
from ralph.pm.progress import ProgressEntry


def entry(iteration=1, story_id="US-001", outcome="success", summary="done"):
    return ProgressEntry(
        timestamp=datetime(2026, 10, 19, 10, 5, 12),
        story_id=story_id,
        iteration=iteration,
        outcome=outcome,
        summary=summary,
    )


class TestRender:
    def test_header_line(self):
        text = entry().render()
        assert text.splitlines()[0] == "## 2026-10-19 10:05:12 | Iteration 1 | US-001 | success"

    def test_ends_with_separator(self):
        assert entry().render().endswith("---\n")

    def test_empty_summary(self):
        assert entry(summary="").render() == "## 2026-10-19 10:05:12 | Iteration 1 | US-001 | success\n---\n"


class TestInit:
    def test_creates_header(self, tmp_path):
        path = tmp_path / "progress.txt"
        assert progress.init_progress_file(path) is True
        content = path.read_text()
        assert content.startswith("# Ralph Progress Log\nStarted: ")
        assert content.endswith("---\n")

    def test_existing_file_untouched(self, tmp_path):
        path = tmp_path / "progress.txt"
        path.write_text("keep me\n")
        assert progress.init_progress_file(path) is False
        assert path.read_text() == "keep me\n"


class TestAppend:
    """append() only ever extends the file."""

    def test_creates_file_with_header(self, tmp_path):
        path = tmp_path / "progress.txt"
        progress.append(path, entry())
        content = path.read_text()
        assert content.startswith("# Ralph Progress Log")
        assert "| US-001 | success" in content

    def test_existing_content_is_prefix(self, tmp_path):
        path = tmp_path / "progress.txt"
        progress.append(path, entry(1))
        before = path.read_text()
        progress.append(path, entry(2, outcome="failure"))
        after = path.read_text()
        assert after.startswith(before)
        assert len(after) > len(before)

    def test_rejects_unknown_outcome(self, tmp_path):
        path = tmp_path / "progress.txt"
        with pytest.raises(ValueError, match="Unknown progress outcome"):
            progress.append(path, entry(outcome="maybe"))
        assert not path.exists()


class TestReadAll:
    """Tests for read_all()."""

    def test_missing_file(self, tmp_path):
        assert progress.read_all(tmp_path / "progress.txt") == []

    def test_reads_entries_in_order(self, tmp_path):
        path = tmp_path / "progress.txt"
        progress.append(path, entry(1, "US-001", "failure", "Agent exited with status 1."))
        progress.append(path, entry(2, "US-001", "success", "Completion marker detected."))
        progress.append(path, entry(3, "US-002", "max_reached", "line one\nline two"))

        entries = progress.read_all(path)
        assert [(e.iteration, e.story_id, e.outcome) for e in entries] == [
            (1, "US-001", "failure"),
            (2, "US-001", "success"),
            (3, "US-002", "max_reached"),
        ]
        assert entries[0].summary == "Agent exited with status 1."
        assert entries[2].summary == "line one\nline two"
        assert entries[0].timestamp == datetime(2026, 10, 19, 10, 5, 12)

    def test_tolerates_free_text(self, tmp_path):
        """Agents sometimes append their own notes to the ledger."""
        path = tmp_path / "progress.txt"
        progress.append(path, entry(1))
        with open(path, "a") as f:
            f.write("\n## Codebase patterns\n- use the repo helpers\n")
        progress.append(path, entry(2, outcome="failure", summary="nope"))

        entries = progress.read_all(path)
        assert [e.iteration for e in entries] == [1, 2]
        assert entries[1].summary == "nope"


class TestStartNew:
    def test_truncates_to_header(self, tmp_path):
        path = tmp_path / "progress.txt"
        progress.append(path, entry(1))
        progress.start_new(path)
        assert progress.read_all(path) == []
        assert path.read_text().startswith("# Ralph Progress Log")
