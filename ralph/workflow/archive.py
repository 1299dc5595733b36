"""
Archive manager for ralph.

When the workspace moves to a different branch, the backlog and ledger
recorded so far belong to the old branch. Before the first iteration of a
run they are copied into a dated snapshot and the live ledger is started
fresh, so progress from one branch never bleeds into another.

Snapshots live under <ralph_dir>/archive/<YYYY-MM-DD>-<branch>/ and are
never overwritten.
"""

import logging
import shutil
from dataclasses import dataclass
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional

from ralph.lib.constants import BRANCH_PREFIX
from ralph.pm import backlog as store
from ralph.pm import progress

logger = logging.getLogger(__name__)


class ArchiveAction(Enum):
    NONE = "none"                              # First run, or branch unchanged
    ARCHIVED = "archived"
    SKIPPED = "skipped"                        # Branch changed, auto_archive off


@dataclass
class ArchiveResult:
    action: ArchiveAction
    archive_dir: Optional[Path] = None


@dataclass
class ArchiveSnapshot:
    """An archived backlog + ledger pair."""
    name: str
    path: Path
    files: list[str]


def archive_dir_name(branch: str, today: date | None = None) -> str:
    """Snapshot directory name for a branch, e.g. 2026-10-19-login-form."""
    today = today or date.today()
    name = branch[len(BRANCH_PREFIX):] if branch.startswith(BRANCH_PREFIX) else branch
    name = name.replace("/", "-").strip("-") or "unnamed"
    return f"{today.isoformat()}-{name}"


def _unique_dir(archive_root: Path, name: str) -> Path:
    candidate = archive_root / name
    suffix = 2
    while candidate.exists():
        candidate = archive_root / f"{name}-{suffix}"
        suffix += 1
    return candidate


def read_last_branch(path: Path) -> Optional[str]:
    """Branch recorded by the previous run, or None."""
    if not path.exists():
        return None
    return path.read_text().strip() or None


def write_last_branch(path: Path, branch: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(branch + "\n")


def maybe_archive(
    current_branch: Optional[str],
    stored_branch: Optional[str],
    backlog_path: Path,
    progress_path: Path,
    archive_root: Path,
    auto_archive: bool = True,
    today: date | None = None,
) -> ArchiveResult:
    """Snapshot backlog and ledger if the branch changed since the last run.

    On archive the live backlog is re-stamped for the new branch (its
    iteration total restarts at zero) and the ledger is started fresh.

    Raises:
        OSError: snapshot couldn't be written; live files are left untouched
        BacklogError: live backlog can't be loaded for re-stamping
    """
    if not current_branch or not stored_branch or current_branch == stored_branch:
        return ArchiveResult(ArchiveAction.NONE)

    if not auto_archive:
        logger.info(f"[ARCHIVE] Branch changed {stored_branch} -> {current_branch}, auto_archive disabled")
        return ArchiveResult(ArchiveAction.SKIPPED)

    archive_root.mkdir(parents=True, exist_ok=True)
    target = _unique_dir(archive_root, archive_dir_name(stored_branch, today))
    target.mkdir(parents=True)

    for source in (backlog_path, progress_path):
        if source.exists():
            shutil.copy2(source, target / source.name)
    logger.info(f"[ARCHIVE] Archived {stored_branch} to {target}")

    if backlog_path.exists():
        live = store.load(backlog_path)
        live.source_branch = current_branch
        live.total_iterations_used = 0
        store.save(live, backlog_path)

    progress.start_new(progress_path)
    return ArchiveResult(ArchiveAction.ARCHIVED, target)


def list_archives(archive_root: Path) -> list[ArchiveSnapshot]:
    """Snapshots under archive_root, oldest first (names start with the date)."""
    if not archive_root.exists():
        return []
    return [
        ArchiveSnapshot(
            name=entry.name,
            path=entry,
            files=sorted(f.name for f in entry.iterdir() if f.is_file()),
        )
        for entry in sorted(archive_root.iterdir())
        if entry.is_dir()
    ]
