"""
Completion detection for agent sessions.

The agent signals it has finished its story by printing the completion
marker anywhere in its output. Exit status alone never means done: agents
often exit 0 after partial progress, and sometimes exit nonzero after
announcing success.
"""

from enum import Enum

from ralph.lib.constants import COMPLETION_MARKER

MAX_SUMMARY_LINE_CHARS = 160


class Outcome(Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    ERRORED = "errored"


class CompletionDetector:
    """Classifies a finished session from its captured output and exit status.

    Matching is a literal, case-sensitive substring search; repeated markers
    count once. Swap the marker (or subclass) to change the protocol without
    touching the engine.
    """

    def __init__(self, marker: str = COMPLETION_MARKER):
        if not marker:
            raise ValueError("Completion marker must be a non-empty string")
        self.marker = marker

    def found_marker(self, output: str) -> bool:
        return self.marker in output

    def classify(self, output: str, exit_status: int) -> Outcome:
        if self.found_marker(output):
            return Outcome.COMPLETE
        if exit_status == 0:
            return Outcome.INCOMPLETE
        return Outcome.ERRORED

    def summarize(self, output: str, exit_status: int, outcome: Outcome) -> str:
        """One or two lines for the progress ledger."""
        if outcome == Outcome.COMPLETE:
            headline = f"Completion marker detected (exit status {exit_status})."
        elif outcome == Outcome.INCOMPLETE:
            headline = "Agent exited cleanly without the completion marker."
        else:
            headline = f"Agent exited with status {exit_status} without the completion marker."

        last = _last_nonempty_line(output)
        if last is None or last == self.marker:
            return headline
        return f"{headline}\nLast output: {last}"


def _last_nonempty_line(output: str) -> str | None:
    for line in reversed(output.splitlines()):
        line = line.strip()
        if line:
            if len(line) > MAX_SUMMARY_LINE_CHARS:
                line = line[:MAX_SUMMARY_LINE_CHARS] + "..."
            return line
    return None
