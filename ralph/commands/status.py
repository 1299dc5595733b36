"""
ralph status - Show backlog progress per story.
"""

from pathlib import Path

from ralph.lib.output import color, header
from ralph.pm import backlog as store
from ralph.pm.backlog import BacklogError
from ralph.pm.models import STATUS_COMPLETED, STATUS_FAILED, STATUS_IN_PROGRESS, STATUS_PENDING

STATUS_COLORS = {
    STATUS_PENDING: "dim",
    STATUS_IN_PROGRESS: "yellow",
    STATUS_COMPLETED: "green",
    STATUS_FAILED: "red",
}


def cmd_status(args) -> int:
    """Show backlog summary."""
    try:
        backlog = store.load(Path(args.prd))
    except BacklogError as e:
        print(f"ERROR: {e}")
        return 2

    header(f"Backlog: {backlog.project or Path(args.prd).resolve().parent.name}")
    if backlog.branch_name:
        print(f"Branch:          {backlog.branch_name}")
    print(f"Iterations used: {backlog.total_iterations_used}")
    print()

    if not backlog.stories:
        print("No stories")
        return 0

    print(f"{'ID':<12} {'PRI':>4}  {'STATUS':<12} {'TRIES':>5}  TITLE")
    print("-" * 72)
    for story in sorted(backlog.stories, key=lambda s: s.priority):
        status = color(f"{story.status:<12}", STATUS_COLORS.get(story.status, "dim"))
        print(f"{story.id:<12} {story.priority:>4}  {status} {story.attempts:>5}  {story.title[:40]}")
    print("-" * 72)

    counts = store.count_by_status(backlog)
    total = len(backlog.stories)
    print(f"{counts[STATUS_COMPLETED]}/{total} completed, "
          f"{counts[STATUS_PENDING]} pending, "
          f"{counts[STATUS_IN_PROGRESS]} in progress, "
          f"{counts[STATUS_FAILED]} failed")

    nxt = store.next_pending(backlog)
    if nxt:
        print(f"\nNext: {nxt.id} - {nxt.title}")
    return 0
