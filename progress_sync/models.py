"""Checkpoint data model.

A Checkpoint is an immutable snapshot of progress derived from a plan
document. It is passed by value between the parser, synthesizer and
recovery code; only the store writes it to disk.

On-disk JSON keeps camelCase keys (version 2 schema):

    {
      "version": 2,
      "planId": "auth-rewrite",
      "planPath": "/repo/plans/auth-rewrite/plan.md",
      "lastCheckpoint": "2026-01-10T23:00:00+00:00",
      "checksum": "sha256:0f3c...",
      "progress": {"totalTasks": 3, "completedTasks": 1, "percentage": 33.3},
      "phases": {"main": {"status": "in_progress", "tasks": {...}}},
      "acceptance": {...},
      "currentPhase": "main",
      "currentTask": "t2",
      "blockers": [],
      "decisions": [{"time": "...", "decision": "..."}],
      "sessionNotes": null,
      "agents": {}
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from progress_sync.types import CriterionId, PhaseId, PlanId, TaskId

SCHEMA_VERSION = 2


class PhaseStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Task:
    """A checkbox task identified by a TASK marker."""

    id: TaskId
    description: str
    done: bool = False
    completed_at: str | None = None  # Sticky, set the first time done flips true
    completed_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"done": self.done, "description": self.description}
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        if self.completed_by is not None:
            data["completedBy"] = self.completed_by
        return data

    @classmethod
    def from_dict(cls, task_id: str, data: dict[str, Any]) -> Task:
        return cls(
            id=TaskId(task_id),
            description=str(data.get("description", "")),
            done=bool(data["done"]),
            completed_at=data.get("completedAt"),
            completed_by=data.get("completedBy"),
        )


def phase_status(tasks: dict[TaskId, Task]) -> PhaseStatus:
    """Derive a phase status from its tasks."""
    if any(not t.done for t in tasks.values()):
        return PhaseStatus.IN_PROGRESS
    if tasks:
        return PhaseStatus.COMPLETED
    return PhaseStatus.PENDING


@dataclass(frozen=True)
class Phase:
    """A group of tasks opened by a CHECKPOINT marker."""

    id: PhaseId
    status: PhaseStatus = PhaseStatus.PENDING
    tasks: dict[TaskId, Task] = field(default_factory=dict)

    @classmethod
    def with_tasks(cls, phase_id: PhaseId, tasks: dict[TaskId, Task]) -> Phase:
        """Build a phase whose status is derived from its tasks."""
        return cls(id=phase_id, status=phase_status(tasks), tasks=dict(tasks))

    def pending_tasks(self) -> list[Task]:
        return [t for t in self.tasks.values() if not t.done]

    def completed_count(self) -> int:
        return sum(1 for t in self.tasks.values() if t.done)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "tasks": {task_id: task.to_dict() for task_id, task in self.tasks.items()},
        }

    @classmethod
    def from_dict(cls, phase_id: str, data: dict[str, Any]) -> Phase:
        raw_tasks = data.get("tasks") or {}
        if not isinstance(raw_tasks, dict):
            raise TypeError(f"Phase {phase_id!r} tasks must be a mapping")
        return cls(
            id=PhaseId(phase_id),
            status=PhaseStatus(data.get("status", PhaseStatus.PENDING.value)),
            tasks={TaskId(tid): Task.from_dict(tid, t) for tid, t in raw_tasks.items()},
        )


@dataclass(frozen=True)
class AcceptanceCriterion:
    """A checkbox criterion identified by an ACCEPT marker."""

    id: CriterionId
    description: str
    met: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"met": self.met, "description": self.description}

    @classmethod
    def from_dict(cls, criterion_id: str, data: dict[str, Any]) -> AcceptanceCriterion:
        return cls(
            id=CriterionId(criterion_id),
            description=str(data.get("description", "")),
            met=bool(data["met"]),
        )


@dataclass(frozen=True)
class Decision:
    """A recorded decision. Write-once: never re-derived from a re-parse."""

    time: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"time": self.time, "decision": self.text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Decision:
        return cls(time=str(data["time"]), text=str(data["decision"]))


def _round_half_up(value: float) -> float:
    # Exact binary value, so 6.25 -> 6.3 and 33.33.. -> 33.3
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Progress:
    total_tasks: int = 0
    completed_tasks: int = 0
    percentage: float = 0

    @classmethod
    def compute(cls, total: int, completed: int) -> Progress:
        """Progress with percentage rounded half-up to one decimal (0 when no tasks)."""
        percentage = _round_half_up(completed / total * 100) if total > 0 else 0
        return cls(total_tasks=total, completed_tasks=completed, percentage=percentage)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTasks": self.total_tasks,
            "completedTasks": self.completed_tasks,
            "percentage": self.percentage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Progress:
        return cls(
            total_tasks=int(data["totalTasks"]),
            completed_tasks=int(data["completedTasks"]),
            percentage=data["percentage"],
        )


@dataclass(frozen=True)
class Checkpoint:
    """Persisted snapshot of plan progress."""

    plan_id: PlanId
    plan_path: str
    last_checkpoint: str
    checksum: str  # Fingerprint of the document that produced this checkpoint
    progress: Progress = field(default_factory=Progress)
    phases: dict[PhaseId, Phase] = field(default_factory=dict)
    acceptance: dict[CriterionId, AcceptanceCriterion] = field(default_factory=dict)
    current_phase: PhaseId | None = None
    current_task: TaskId | None = None
    blockers: tuple[str, ...] = ()
    decisions: tuple[Decision, ...] = ()
    session_notes: str | None = None
    agents: dict[str, Any] = field(default_factory=dict)  # Opaque per-agent state
    version: int = SCHEMA_VERSION

    def all_tasks(self) -> dict[TaskId, Task]:
        """All tasks across phases, in phase then document order."""
        tasks: dict[TaskId, Task] = {}
        for phase in self.phases.values():
            tasks.update(phase.tasks)
        return tasks

    def find_task(self, task_id: str) -> Task | None:
        for phase in self.phases.values():
            if task_id in phase.tasks:
                return phase.tasks[TaskId(task_id)]
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "planId": self.plan_id,
            "planPath": self.plan_path,
            "lastCheckpoint": self.last_checkpoint,
            "checksum": self.checksum,
            "progress": self.progress.to_dict(),
            "phases": {pid: phase.to_dict() for pid, phase in self.phases.items()},
            "acceptance": {cid: c.to_dict() for cid, c in self.acceptance.items()},
            "currentPhase": self.current_phase,
            "currentTask": self.current_task,
            "blockers": list(self.blockers),
            "decisions": [d.to_dict() for d in self.decisions],
            "sessionNotes": self.session_notes,
            "agents": dict(self.agents),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Checkpoint:
        """Deserialize a checkpoint.

        Raises:
            KeyError, TypeError, ValueError: if the data is not a valid checkpoint
        """
        if not isinstance(data, dict):
            raise TypeError("Checkpoint data must be a mapping")

        phases = data.get("phases") or {}
        acceptance = data.get("acceptance") or {}
        agents = data.get("agents") or {}
        if not isinstance(phases, dict) or not isinstance(acceptance, dict):
            raise TypeError("'phases' and 'acceptance' must be mappings")
        if not isinstance(agents, dict):
            raise TypeError("'agents' must be a mapping")

        return cls(
            version=int(data.get("version", SCHEMA_VERSION)),
            plan_id=PlanId(data["planId"]),
            plan_path=str(data["planPath"]),
            last_checkpoint=str(data["lastCheckpoint"]),
            checksum=str(data["checksum"]),
            progress=Progress.from_dict(data["progress"]),
            phases={PhaseId(pid): Phase.from_dict(pid, p) for pid, p in phases.items()},
            acceptance={
                CriterionId(cid): AcceptanceCriterion.from_dict(cid, c)
                for cid, c in acceptance.items()
            },
            current_phase=data.get("currentPhase"),
            current_task=data.get("currentTask"),
            blockers=tuple(str(b) for b in data.get("blockers") or []),
            decisions=tuple(Decision.from_dict(d) for d in data.get("decisions") or []),
            session_notes=data.get("sessionNotes"),
            agents=agents,
        )
