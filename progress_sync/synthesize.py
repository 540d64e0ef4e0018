"""State synthesis: merge freshly parsed facts with a prior checkpoint.

The plan document is the source of truth for what tasks exist and whether
they are checked. The prior checkpoint is the source of truth for what the
document cannot express: when and by whom a task was completed, the
decision log, session notes and per-agent state.

synthesize() is total: any PlanFacts (including an empty one) produces a
valid Checkpoint.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from progress_sync.drift import fingerprint
from progress_sync.markers import PlanFacts
from progress_sync.models import (
    AcceptanceCriterion,
    Checkpoint,
    Decision,
    Phase,
    Progress,
    Task,
)
from progress_sync.types import DEFAULT_PHASE, PhaseId, PlanId, TaskId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SynthesisResult:
    checkpoint: Checkpoint
    newly_completed: tuple[TaskId, ...] = ()


def plan_id_for(plan_path: Path) -> PlanId:
    """A plan is identified by the name of the directory holding it."""
    return PlanId(Path(plan_path).resolve().parent.name)


def _merge_task(
    task_id: TaskId,
    description: str,
    done: bool,
    prior_task: Task | None,
    now: str,
    actor: str,
) -> tuple[Task, bool]:
    """Build the merged task and report whether it was newly completed."""
    if not done:
        return Task(id=task_id, description=description, done=False), False

    if prior_task is None or not prior_task.done:
        return (
            Task(
                id=task_id,
                description=description,
                done=True,
                completed_at=now,
                completed_by=actor,
            ),
            True,
        )

    return (
        Task(
            id=task_id,
            description=description,
            done=True,
            completed_at=prior_task.completed_at or now,
            completed_by=prior_task.completed_by or actor,
        ),
        False,
    )


def _locate_current(phases: dict[PhaseId, Phase]) -> tuple[PhaseId | None, TaskId | None]:
    """First phase (document order) with a pending task, and that task."""
    for phase_id, phase in phases.items():
        pending = phase.pending_tasks()
        if pending:
            return phase_id, pending[0].id
    return None, None


def synthesize(
    facts: PlanFacts,
    prior: Checkpoint | None,
    *,
    content: str,
    plan_path: Path,
    now: datetime | None = None,
    actor: str = "main",
) -> SynthesisResult:
    """Merge parsed facts with an optional prior checkpoint.

    Args:
        facts: Output of parse_markers(content)
        prior: Last known checkpoint for this plan, or None on first sync
        content: The document text facts were parsed from (fingerprinted)
        plan_path: Path to the plan document
        now: Timestamp to stamp; defaults to the current UTC time
        actor: Recorded as completed_by for newly completed tasks

    Returns:
        SynthesisResult with the new checkpoint and the ids of tasks that
        became done since the prior checkpoint
    """
    stamp = (now or datetime.now(UTC)).isoformat()

    # Every task goes into the first declared phase. Boundary markers do not
    # partition tasks.
    phase_ids = list(facts.phases) or [DEFAULT_PHASE]
    target_phase = phase_ids[0]

    merged: dict[TaskId, Task] = {}
    newly_completed: list[TaskId] = []
    for task_id, marker in facts.tasks.items():
        prior_task = prior.find_task(task_id) if prior else None
        task, is_new = _merge_task(
            task_id, marker.description, marker.done, prior_task, stamp, actor
        )
        merged[task_id] = task
        if is_new:
            newly_completed.append(task_id)

    phases: dict[PhaseId, Phase] = {}
    for phase_id in phase_ids:
        tasks = merged if phase_id == target_phase else {}
        phases[phase_id] = Phase.with_tasks(phase_id, tasks)

    current_phase, current_task = _locate_current(phases)

    completed = sum(1 for t in merged.values() if t.done)
    progress = Progress.compute(total=len(merged), completed=completed)

    acceptance = {
        cid: AcceptanceCriterion(id=cid, description=c.description, met=c.met)
        for cid, c in facts.acceptance.items()
    }

    if prior is not None:
        decisions = prior.decisions
        session_notes = prior.session_notes
        agents = dict(prior.agents)
    else:
        decisions = tuple(Decision(time=stamp, text=text) for text in facts.decisions)
        session_notes = None
        agents = {}

    checkpoint = Checkpoint(
        plan_id=plan_id_for(plan_path),
        plan_path=str(Path(plan_path).resolve()),
        last_checkpoint=stamp,
        checksum=fingerprint(content),
        progress=progress,
        phases=phases,
        acceptance=acceptance,
        current_phase=current_phase,
        current_task=current_task,
        blockers=tuple(facts.blockers),
        decisions=decisions,
        session_notes=session_notes,
        agents=agents,
    )

    if newly_completed:
        logger.debug(f"Newly completed tasks: {', '.join(newly_completed)}")

    return SynthesisResult(checkpoint=checkpoint, newly_completed=tuple(newly_completed))

