"""
Backlog and progress bookkeeping for ralph.

The backlog (prd.json) holds the stories the agent works through; the
progress ledger (progress.txt) is the append-only record of every iteration.
"""

from ralph.pm.models import Backlog, Story
from ralph.pm.backlog import (
    BacklogError,
    BacklogNotFoundError,
    BacklogParseError,
    InvalidStoryTransition,
    load,
    save,
    next_pending,
)
from ralph.pm.progress import ProgressEntry, append, read_all

__all__ = [
    "Backlog",
    "Story",
    "BacklogError",
    "BacklogNotFoundError",
    "BacklogParseError",
    "InvalidStoryTransition",
    "load",
    "save",
    "next_pending",
    "ProgressEntry",
    "append",
    "read_all",
]
