"""Tests for ralph.git module."""

import subprocess
from pathlib import Path
from unittest.mock import patch, MagicMock

from ralph.git import GitResult, get_current_branch, run_git


class TestGitResult:
    """Test GitResult dataclass."""

    def test_success_when_returncode_zero(self):
        result = GitResult(returncode=0, stdout="ok", stderr="")
        assert result.success is True

    def test_failure_when_returncode_nonzero(self):
        result = GitResult(returncode=1, stdout="", stderr="error")
        assert result.success is False

    def test_failure_when_timed_out(self):
        result = GitResult(returncode=0, stdout="ok", stderr="", timed_out=True)
        assert result.success is False


class TestRunGit:
    """Test run_git function."""

    @patch("ralph.git.runner.subprocess.run")
    def test_returns_result_on_success(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="output", stderr="")
        result = run_git(["status"], Path("/tmp"))
        assert result.success
        assert result.stdout == "output"
        assert mock_run.call_args[0][0] == ["git", "-C", "/tmp", "status"]

    @patch("ralph.git.runner.subprocess.run")
    def test_handles_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="git", timeout=30)
        result = run_git(["status"], Path("/tmp"))
        assert not result.success
        assert result.timed_out

    @patch("ralph.git.runner.subprocess.run")
    def test_handles_missing_git(self, mock_run):
        mock_run.side_effect = FileNotFoundError("git")
        result = run_git(["status"], Path("/tmp"))
        assert not result.success
        assert "git not found" in result.stderr


class TestGetCurrentBranch:
    @patch("ralph.git.branch.run_git")
    def test_branch_name(self, mock_git):
        mock_git.return_value = GitResult(returncode=0, stdout="ralph/login\n", stderr="")
        assert get_current_branch(Path("/repo")) == "ralph/login"

    @patch("ralph.git.branch.run_git")
    def test_detached_head(self, mock_git):
        mock_git.return_value = GitResult(returncode=0, stdout="\n", stderr="")
        assert get_current_branch(Path("/repo")) is None

    @patch("ralph.git.branch.run_git")
    def test_not_a_repo(self, mock_git):
        mock_git.return_value = GitResult(returncode=128, stdout="", stderr="fatal: not a git repository")
        assert get_current_branch(Path("/repo")) is None
