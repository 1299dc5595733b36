"""
Progress ledger for ralph.

progress.txt is an append-only, human-readable log with one block per
iteration. It doubles as the memory handed to each fresh agent process:

    # Ralph Progress Log
    Started: 2026-10-19 10:00:00
    ---
    ## 2026-10-19 10:05:12 | Iteration 1 | US-001 | success
    Completion marker detected (exit status 0).
    ---

Entries are never edited or removed; corrections are new entries. The only
truncation is start_new(), used by the archive manager once the old ledger
has been copied into a snapshot.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = [
    "OUTCOME_SUCCESS", "OUTCOME_FAILURE", "OUTCOME_MAX_REACHED", "OUTCOMES",
    "ProgressEntry", "init_progress_file", "start_new", "append", "read_all",
]

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"
OUTCOME_MAX_REACHED = "max_reached"

OUTCOMES = (OUTCOME_SUCCESS, OUTCOME_FAILURE, OUTCOME_MAX_REACHED)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SEPARATOR = "---"

_ENTRY_HEADER = re.compile(
    r"^## (?P<timestamp>\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) \| "
    r"Iteration (?P<iteration>\d+) \| "
    r"(?P<story_id>.+?) \| "
    r"(?P<outcome>" + "|".join(OUTCOMES) + r")\s*$"
)


@dataclass
class ProgressEntry:
    """One iteration's record."""
    timestamp: datetime
    story_id: str
    iteration: int
    outcome: str
    summary: str = ""

    def render(self) -> str:
        header = (
            f"## {self.timestamp.strftime(TIMESTAMP_FORMAT)} | "
            f"Iteration {self.iteration} | {self.story_id} | {self.outcome}"
        )
        body = self.summary.strip()
        if body:
            return f"{header}\n{body}\n{SEPARATOR}\n"
        return f"{header}\n{SEPARATOR}\n"


def _header(now: datetime | None = None) -> str:
    now = now or datetime.now()
    return f"# Ralph Progress Log\nStarted: {now.strftime(TIMESTAMP_FORMAT)}\n{SEPARATOR}\n"


def init_progress_file(path: Path) -> bool:
    """Create the ledger with its header if it doesn't exist.

    Returns True if the file was created.
    """
    path = Path(path)
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_header())
    return True


def start_new(path: Path) -> None:
    """Replace the ledger with an empty one (header only).

    Only called after the previous ledger has been archived.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_header())
    logger.info(f"Started new progress ledger at {path}")


def append(path: Path, entry: ProgressEntry) -> None:
    """Append one entry. Opens in append mode so readers only ever see the file grow.

    Raises:
        ValueError: unknown outcome
        OSError: on any filesystem failure
    """
    if entry.outcome not in OUTCOMES:
        raise ValueError(f"Unknown progress outcome: {entry.outcome}")

    path = Path(path)
    init_progress_file(path)
    with open(path, "a") as f:
        f.write(entry.render())
        f.flush()


def read_all(path: Path) -> list[ProgressEntry]:
    """Parse every entry in the ledger, oldest first.

    Text that doesn't belong to an entry (the header, notes the agent wrote
    itself) is skipped. A missing file reads as an empty ledger.
    """
    path = Path(path)
    if not path.exists():
        return []

    entries: list[ProgressEntry] = []
    current: ProgressEntry | None = None
    summary_lines: list[str] = []

    def close_current():
        if current is not None:
            current.summary = "\n".join(summary_lines).strip()
            entries.append(current)

    for line in path.read_text().splitlines():
        match = _ENTRY_HEADER.match(line)
        if match:
            close_current()
            summary_lines = []
            current = ProgressEntry(
                timestamp=datetime.strptime(match.group("timestamp"), TIMESTAMP_FORMAT),
                story_id=match.group("story_id"),
                iteration=int(match.group("iteration")),
                outcome=match.group("outcome"),
            )
            continue

        if current is None:
            continue

        if line.strip() == SEPARATOR:
            close_current()
            current = None
            summary_lines = []
            continue

        summary_lines.append(line)

    close_current()
    return entries
