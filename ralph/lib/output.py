"""Terminal output helpers.

Separates UI/display concerns from engine logic: status markers for each
iteration, section headers, and keyword coloring of streamed agent output.
"""

import os
import sys

from ralph.lib.constants import COMPLETION_MARKER

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "bold": "\033[1m",
    "green": "\033[32m",
    "red": "\033[31m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "cyan": "\033[36m",
}

MARKERS = {
    "success": ("✓", "green"),
    "failure": ("✗", "red"),
    "warning": ("!", "yellow"),
    "info": ("→", "cyan"),
}

MAX_FAILURE_OUTPUT_CHARS = 3000


def use_color(stream=None) -> bool:
    """Color only on a TTY, and never when NO_COLOR is set."""
    if os.environ.get("NO_COLOR"):
        return False
    stream = stream or sys.stdout
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def color(text: str, *names: str, enabled: bool | None = None) -> str:
    if enabled is None:
        enabled = use_color()
    if not enabled or not names:
        return text
    prefix = "".join(COLORS[n] for n in names)
    return f"{prefix}{text}{COLORS['reset']}"


def marker(kind: str, message: str, enabled: bool | None = None) -> str:
    """Format a status line: '✓ message' in green, '✗ message' in red, ..."""
    symbol, color_name = MARKERS[kind]
    return color(f"{symbol} {message}", color_name, enabled=enabled)


def print_marker(kind: str, message: str) -> None:
    print(marker(kind, message))


def header(title: str) -> None:
    """Print a section header."""
    print(color(title, "bold", "cyan"))
    print(color("=" * len(title), "cyan"))


def iteration_banner(iteration: int, max_iterations: int, story_id: str, title: str) -> None:
    print()
    print(f"{color('Iteration', 'bold')} {iteration} / {max_iterations}: {story_id} - {title}")
    print(color("-" * 40, "dim"))


def colorize_output(line: str, enabled: bool | None = None) -> str:
    """Highlight errors, warnings and success lines in streamed agent output."""
    if COMPLETION_MARKER in line:
        return color(line, "bold", "green", enabled=enabled)
    if "Error" in line or "error" in line or "ERROR" in line:
        return color(line, "red", enabled=enabled)
    if "Warning" in line or "warning" in line or "WARNING" in line:
        return color(line, "yellow", enabled=enabled)
    if "Success" in line or "success" in line or "✓" in line:
        return color(line, "green", enabled=enabled)
    return line


def echo_agent_line(line: str) -> None:
    """Forward one line of agent output to stdout immediately."""
    text = line.rstrip("\n")
    sys.stdout.write(colorize_output(text) + "\n")
    sys.stdout.flush()


def truncate_output(output: str, max_chars: int = MAX_FAILURE_OUTPUT_CHARS) -> str:
    """Truncate output, keeping start and end for context."""
    if len(output) <= max_chars:
        return output
    marker_text = "\n\n... [truncated] ...\n\n"
    available = max_chars - len(marker_text)
    head_chars = (available * 2) // 3
    tail_chars = available - head_chars
    return f"{output[:head_chars]}{marker_text}{output[-tail_chars:]}"
