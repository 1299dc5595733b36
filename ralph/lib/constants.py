"""Shared constants for ralph."""

# Sentinel the agent prints once it has finished its assigned story
COMPLETION_MARKER = "<promise>COMPLETE</promise>"

DEFAULT_RALPH_DIR = "ralph"
BACKLOG_FILENAME = "prd.json"
PROGRESS_FILENAME = "progress.txt"
LAST_BRANCH_FILENAME = ".last-branch"
ARCHIVE_DIRNAME = "archive"
LOGS_DIRNAME = "logs"
AGENTS_CONFIG_FILENAME = "agents.yaml"

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_MAX_STORY_ATTEMPTS = 3

# Number of ledger entries handed to the agent as prior-iteration context
HISTORY_ENTRIES_IN_PROMPT = 10

# Seconds to wait for the agent after a termination request before killing it
TERMINATE_GRACE_SECONDS = 5.0

BRANCH_PREFIX = "ralph/"
