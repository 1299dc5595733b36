"""
ralph log - Show recent progress ledger entries.

Newest first, similar to `git log --oneline`, with the summary beneath each
entry unless --oneline is given.
"""

from pathlib import Path

from ralph.lib.constants import PROGRESS_FILENAME
from ralph.lib.output import color
from ralph.pm import progress

OUTCOME_COLORS = {
    progress.OUTCOME_SUCCESS: "green",
    progress.OUTCOME_FAILURE: "red",
    progress.OUTCOME_MAX_REACHED: "yellow",
}


def cmd_log(args) -> int:
    """Show ledger entries."""
    path = Path(args.prd).parent / PROGRESS_FILENAME
    entries = progress.read_all(path)
    if not entries:
        print("No iterations recorded yet.")
        return 0

    if args.limit:
        entries = entries[-args.limit:]

    for entry in reversed(entries):
        stamp = color(entry.timestamp.strftime(progress.TIMESTAMP_FORMAT), "dim")
        outcome = color(f"{entry.outcome:<11}", OUTCOME_COLORS[entry.outcome])
        print(f"{stamp}  #{entry.iteration:<4} {outcome} {entry.story_id}")
        if not args.oneline and entry.summary:
            for line in entry.summary.splitlines():
                print(f"    {line}")
    return 0
