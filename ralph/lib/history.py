"""
Progress history formatting for agent prompts.

Each agent session starts with no memory, so the ledger's recent entries
are rendered into the prompt as prior-iteration context.
"""

from ralph.lib.output import truncate_output
from ralph.pm.progress import ProgressEntry, TIMESTAMP_FORMAT

__all__ = ["format_progress_history"]

MAX_SUMMARY_CHARS = 600


def format_progress_history(entries: list[ProgressEntry] | None, limit: int = 10) -> str:
    """
    Format the most recent ledger entries for the agent prompt.

    Args:
        entries: Ledger entries, oldest first
        limit: Maximum number of entries to include (most recent kept)

    Returns:
        Markdown section, or empty string when there is no history
    """
    if not entries:
        return ""

    recent = entries[-limit:] if limit > 0 else []
    if not recent:
        return ""

    parts = ["## Progress history", ""]
    omitted = len(entries) - len(recent)
    if omitted:
        parts.append(f"({omitted} earlier iteration(s) omitted)")
        parts.append("")

    for entry in recent:
        stamp = entry.timestamp.strftime(TIMESTAMP_FORMAT)
        parts.append(f"### Iteration {entry.iteration} - {entry.story_id} - {entry.outcome} ({stamp})")
        if entry.summary:
            parts.append(truncate_output(entry.summary, MAX_SUMMARY_CHARS))
        parts.append("")

    return "\n".join(parts).rstrip() + "\n"
