"""Trigger events and reports for the sync engine.

Events are immutable dataclasses describing why the engine was invoked.
Reports describe what an invocation did, for the host to render.
"""

from dataclasses import dataclass
from pathlib import Path

from progress_sync.models import Checkpoint
from progress_sync.recovery import Provenance
from progress_sync.types import TaskId


@dataclass(frozen=True)
class DocumentChanged:
    """Emitted when the host edited or wrote a file.

    Attributes:
        timestamp: ISO format timestamp of the edit notification
        file_path: Path of the edited file (may not be a plan file)
        tool_name: Name of the host tool that made the edit, if known
    """

    timestamp: str
    file_path: str
    tool_name: str | None = None


@dataclass(frozen=True)
class SessionStarted:
    """Emitted when a new host session starts or resumes.

    Attributes:
        timestamp: ISO format timestamp when the session started
        project_root: Directory searched for the active plan
        source: Why the session started (startup, resume, clear, compact)
    """

    timestamp: str
    project_root: str
    source: str = "startup"


SyncEvent = DocumentChanged | SessionStarted


@dataclass(frozen=True)
class ChangeReport:
    """Outcome of a document-change sync that wrote a new checkpoint."""

    newly_completed: tuple[TaskId, ...]
    percentage: float
    completed_tasks: int
    total_tasks: int

    @classmethod
    def from_checkpoint(cls, checkpoint: Checkpoint, newly_completed: tuple[TaskId, ...]) -> "ChangeReport":
        return cls(
            newly_completed=newly_completed,
            percentage=checkpoint.progress.percentage,
            completed_tasks=checkpoint.progress.completed_tasks,
            total_tasks=checkpoint.progress.total_tasks,
        )


@dataclass(frozen=True)
class ResumeReport:
    """Checkpoint to resume from at session start, and where it came from."""

    checkpoint: Checkpoint
    plan_dir: Path
    provenance: Provenance
