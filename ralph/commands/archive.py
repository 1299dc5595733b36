"""
ralph archive - List archived runs.
"""

from pathlib import Path

from ralph.lib.constants import ARCHIVE_DIRNAME
from ralph.workflow.archive import list_archives


def cmd_archive(args) -> int:
    """List snapshots taken on branch changes."""
    archive_root = Path(args.prd).parent / ARCHIVE_DIRNAME
    snapshots = list_archives(archive_root)

    if not snapshots:
        print("No archived runs")
        return 0

    print(f"Archived runs in: {archive_root}")
    print()
    print(f"{'NAME':<40} FILES")
    print("-" * 72)
    for snapshot in snapshots:
        print(f"{snapshot.name:<40} {', '.join(snapshot.files)}")
    print("-" * 72)
    print(f"{len(snapshots)} archived run(s)")
    return 0
