"""Marker parser for plan documents.

Extracts structured facts from the HTML comment markers embedded in a
plan.md file:

    - [x] Write schema <!-- TASK: schema -->
    - [ ] Wire API <!-- TASK: api -->
    <!-- CHECKPOINT: phase-1 -->
    - [ ] All endpoints documented <!-- ACCEPT: docs -->
    <!-- BLOCKER: waiting on infra credentials -->
    <!-- DECISION: use JSON over YAML for state -->

Parsing is pure and never fails: unrecognized or malformed markers are
skipped, and a document without markers yields empty collections.
The parser mints no timestamps, so re-parsing identical text gives an
equal result.
"""

import re
from dataclasses import dataclass, field

from progress_sync.types import CriterionId, PhaseId, TaskId

TASK_RE = re.compile(r"- \[([ x])\] (.+?) <!-- TASK: ([\w-]+) -->")
PHASE_RE = re.compile(r"<!-- CHECKPOINT: ([\w-]+) -->")
ACCEPT_RE = re.compile(r"- \[([ x])\] (.+?) <!-- ACCEPT: ([\w-]+) -->")
BLOCKER_RE = re.compile(r"<!-- BLOCKER: (.+?) -->")
DECISION_RE = re.compile(r"<!-- DECISION: (.+?) -->")


@dataclass(frozen=True)
class TaskMarker:
    id: TaskId
    description: str
    done: bool


@dataclass(frozen=True)
class CriterionMarker:
    id: CriterionId
    description: str
    met: bool


@dataclass(frozen=True)
class PlanFacts:
    """Everything the parser found in one document, in document order."""

    tasks: dict[TaskId, TaskMarker] = field(default_factory=dict)
    phases: tuple[PhaseId, ...] = ()
    acceptance: dict[CriterionId, CriterionMarker] = field(default_factory=dict)
    blockers: tuple[str, ...] = ()
    decisions: tuple[str, ...] = ()

    @property
    def has_markers(self) -> bool:
        return bool(
            self.tasks or self.phases or self.acceptance or self.blockers or self.decisions
        )


def parse_tasks(content: str) -> dict[TaskId, TaskMarker]:
    """Parse TASK checkbox markers. A repeated id keeps its first position."""
    tasks: dict[TaskId, TaskMarker] = {}
    for match in TASK_RE.finditer(content):
        checked, description, task_id = match.groups()
        tasks[TaskId(task_id)] = TaskMarker(
            id=TaskId(task_id),
            description=description.strip(),
            done=checked == "x",
        )
    return tasks


def parse_phases(content: str) -> tuple[PhaseId, ...]:
    """Parse CHECKPOINT phase-boundary markers, de-duplicated in order."""
    seen: dict[PhaseId, None] = {}
    for match in PHASE_RE.finditer(content):
        seen.setdefault(PhaseId(match.group(1)), None)
    return tuple(seen)


def parse_acceptance(content: str) -> dict[CriterionId, CriterionMarker]:
    criteria: dict[CriterionId, CriterionMarker] = {}
    for match in ACCEPT_RE.finditer(content):
        checked, description, criterion_id = match.groups()
        criteria[CriterionId(criterion_id)] = CriterionMarker(
            id=CriterionId(criterion_id),
            description=description.strip(),
            met=checked == "x",
        )
    return criteria


def parse_blockers(content: str) -> tuple[str, ...]:
    return tuple(m.group(1).strip() for m in BLOCKER_RE.finditer(content))


def parse_decisions(content: str) -> tuple[str, ...]:
    return tuple(m.group(1).strip() for m in DECISION_RE.finditer(content))


def parse_markers(content: str) -> PlanFacts:
    """Parse every marker kind from a plan document."""
    return PlanFacts(
        tasks=parse_tasks(content),
        phases=parse_phases(content),
        acceptance=parse_acceptance(content),
        blockers=parse_blockers(content),
        decisions=parse_decisions(content),
    )
