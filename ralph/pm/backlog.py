"""
Backlog store for ralph.

The backlog is a single JSON document (prd.json) holding ordered stories
plus run metadata. This module is the only writer of that file:

- load() parses and validates it (legacy prd.json documents are normalized)
- save() writes atomically: temp file in the same directory, fsync, os.replace
- mark_*() functions enforce the story lifecycle:

    pending -> in_progress -> completed
                          \\-> pending (retry)
                          \\-> failed

  with at most one story in_progress at any time.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from ralph.lib.validate import ValidationError, validate, validate_before_write
from ralph.pm.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    STORY_STATUSES,
    Backlog,
    Story,
)

logger = logging.getLogger(__name__)


class BacklogError(Exception):
    """Base class for backlog failures."""
    pass


class BacklogNotFoundError(BacklogError):
    """Backlog file does not exist."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Backlog not found: {path}")


class BacklogParseError(BacklogError):
    """Backlog file is not valid JSON or doesn't match the schema."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"Invalid backlog {path}: {message}")


class InvalidStoryTransition(BacklogError):
    """Raised when a story is moved along an edge the lifecycle doesn't allow."""

    def __init__(self, story: Story, to_status: str, reason: str = ""):
        self.story_id = story.id
        self.from_status = story.status
        self.to_status = to_status
        super().__init__(
            f"Invalid story transition: {story.id} {story.status} -> {to_status}"
            + (f" ({reason})" if reason else "")
        )


def _normalize_legacy(data: dict) -> dict:
    """Convert a legacy prd.json (camelCase keys, boolean `passes`) to the current layout."""
    if "userStories" not in data:
        return data

    stories = []
    for raw in data.get("userStories") or []:
        if not isinstance(raw, dict):
            stories.append(raw)  # Let schema validation report it
            continue
        story = {
            "id": raw.get("id"),
            "title": raw.get("title", ""),
            "description": raw.get("description", ""),
            "acceptance_criteria": raw.get("acceptanceCriteria", []),
            "priority": raw.get("priority"),
            "status": STATUS_COMPLETED if raw.get("passes") else STATUS_PENDING,
            "notes": raw.get("notes", ""),
        }
        stories.append(story)

    logger.info("Converting legacy backlog layout (userStories/passes)")
    return {
        "project": data.get("project", ""),
        "description": data.get("description", ""),
        "branch_name": data.get("branchName", ""),
        "created_at": data.get("createdAt", ""),
        "source_branch": data.get("sourceBranch", ""),
        "total_iterations_used": data.get("totalIterationsUsed", 0),
        "stories": stories,
    }


def from_dict(data: dict) -> Backlog:
    """Build a Backlog from an already validated dict."""
    stories = [
        Story(
            id=s["id"],
            title=s.get("title", ""),
            priority=s["priority"],
            status=s.get("status", STATUS_PENDING),
            description=s.get("description", ""),
            acceptance_criteria=list(s.get("acceptance_criteria", [])),
            notes=s.get("notes", ""),
            attempts=s.get("attempts", 0),
        )
        for s in data.get("stories", [])
    ]
    return Backlog(
        stories=stories,
        project=data.get("project", ""),
        description=data.get("description", ""),
        branch_name=data.get("branch_name", ""),
        created_at=data.get("created_at", ""),
        source_branch=data.get("source_branch", ""),
        total_iterations_used=data.get("total_iterations_used", 0),
    )


def to_dict(backlog: Backlog) -> dict:
    """Serialize a Backlog in its on-disk layout (stories last for readability)."""
    data = asdict(backlog)
    stories = data.pop("stories")
    data["stories"] = stories
    return data


def load(path: Path) -> Backlog:
    """Load and validate the backlog at path.

    Raises:
        BacklogNotFoundError: file doesn't exist
        BacklogParseError: invalid JSON, schema mismatch, or duplicate story IDs
    """
    path = Path(path)
    if not path.exists():
        raise BacklogNotFoundError(path)

    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise BacklogParseError(path, f"invalid JSON: {e}") from None

    if not isinstance(data, dict):
        raise BacklogParseError(path, "top level must be an object")

    data = _normalize_legacy(data)

    try:
        validate(data, "backlog")
    except ValidationError as e:
        raise BacklogParseError(path, str(e)) from None

    seen = set()
    for story in data["stories"]:
        if story["id"] in seen:
            raise BacklogParseError(path, f"duplicate story id '{story['id']}'")
        seen.add(story["id"])

    backlog = from_dict(data)

    in_progress = [s.id for s in backlog.stories if s.status == STATUS_IN_PROGRESS]
    if len(in_progress) > 1:
        raise BacklogParseError(path, f"more than one story in progress: {', '.join(in_progress)}")

    return backlog


def save(backlog: Backlog, path: Path) -> None:
    """Atomically write the backlog to path.

    The document is written to a temp file next to the target and moved into
    place with os.replace, so an interrupted write leaves the previous file
    untouched.

    Raises:
        ValidationError: backlog would serialize to an invalid document
        OSError: on any filesystem failure
    """
    path = Path(path)
    data = to_dict(backlog)
    validate_before_write(data, "backlog", path)
    content = json.dumps(data, indent=2) + "\n"

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.debug(f"Saved backlog {path}")


def next_pending(backlog: Backlog) -> Optional[Story]:
    """Return the pending story with the lowest priority value.

    Ties go to the story that appears first in the document.
    """
    best = None
    for story in backlog.stories:
        if story.status != STATUS_PENDING:
            continue
        if best is None or story.priority < best.priority:
            best = story
    return best


def find_story(backlog: Backlog, story_id: str) -> Story:
    """Get a story by ID or raise BacklogError."""
    story = backlog.find(story_id)
    if story is None:
        raise BacklogError(f"Story '{story_id}' not found in backlog")
    return story


def mark_in_progress(backlog: Backlog, story_id: str) -> Story:
    """pending -> in_progress. Refuses if another story is already in progress."""
    story = find_story(backlog, story_id)
    if story.status != STATUS_PENDING:
        raise InvalidStoryTransition(story, STATUS_IN_PROGRESS)

    active = backlog.in_progress()
    if active is not None:
        raise InvalidStoryTransition(story, STATUS_IN_PROGRESS, f"{active.id} is already in progress")

    story.status = STATUS_IN_PROGRESS
    return story


def mark_completed(backlog: Backlog, story_id: str) -> Story:
    """in_progress -> completed."""
    story = find_story(backlog, story_id)
    if story.status != STATUS_IN_PROGRESS:
        raise InvalidStoryTransition(story, STATUS_COMPLETED)
    story.status = STATUS_COMPLETED
    story.attempts = 0
    return story


def mark_failed(backlog: Backlog, story_id: str) -> Story:
    """in_progress -> failed. Terminal; the story is never selected again."""
    story = find_story(backlog, story_id)
    if story.status != STATUS_IN_PROGRESS:
        raise InvalidStoryTransition(story, STATUS_FAILED)
    story.status = STATUS_FAILED
    return story


def mark_pending(backlog: Backlog, story_id: str) -> Story:
    """in_progress -> pending, releasing the story for a later retry."""
    story = find_story(backlog, story_id)
    if story.status != STATUS_IN_PROGRESS:
        raise InvalidStoryTransition(story, STATUS_PENDING)
    story.status = STATUS_PENDING
    return story


def record_failure(backlog: Backlog, story_id: str) -> int:
    """Count one more failed iteration against a story. Returns the new total."""
    story = find_story(backlog, story_id)
    story.attempts += 1
    return story.attempts


def requeue_interrupted(backlog: Backlog) -> list[Story]:
    """Return stories left in_progress by an interrupted run to pending.

    Interrupted stories are always re-attempted, never dropped.
    """
    requeued = []
    for story in backlog.stories:
        if story.status == STATUS_IN_PROGRESS:
            logger.info(f"Requeueing interrupted story {story.id}")
            story.status = STATUS_PENDING
            requeued.append(story)
    return requeued


def count_by_status(backlog: Backlog) -> dict[str, int]:
    """Count stories per status (every status present, zero if unused)."""
    counts = {status: 0 for status in STORY_STATUSES}
    for story in backlog.stories:
        counts[story.status] = counts.get(story.status, 0) + 1
    return counts
