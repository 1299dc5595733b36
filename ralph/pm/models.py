"""
Data models for the backlog.
"""

from dataclasses import dataclass, field
from typing import Optional

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

STORY_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_FAILED)


@dataclass
class Story:
    """A schedulable unit of work.

    Title, description and acceptance criteria are opaque to the engine;
    only id, priority and status drive scheduling.
    """
    id: str                                    # US-001
    title: str
    priority: int                              # Lower value runs first
    status: str = STATUS_PENDING
    description: str = ""
    acceptance_criteria: list[str] = field(default_factory=list)
    notes: str = ""
    attempts: int = 0                          # Consecutive failed iterations


@dataclass
class Backlog:
    """Ordered stories plus run-level metadata."""
    stories: list[Story] = field(default_factory=list)
    project: str = ""
    description: str = ""
    branch_name: str = ""                      # Branch the stories target
    created_at: str = ""
    source_branch: str = ""                    # Branch context of the recorded progress
    total_iterations_used: int = 0

    def find(self, story_id: str) -> Optional[Story]:
        for story in self.stories:
            if story.id == story_id:
                return story
        return None

    def in_progress(self) -> Optional[Story]:
        for story in self.stories:
            if story.status == STATUS_IN_PROGRESS:
                return story
        return None
