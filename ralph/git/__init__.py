"""Git operations for ralph.

Only branch lookup is needed: the archive manager compares the workspace
branch against the branch recorded for the current progress ledger.
"""

from ralph.git.runner import GitResult, run_git
from ralph.git.branch import get_current_branch

__all__ = ["GitResult", "run_git", "get_current_branch"]
