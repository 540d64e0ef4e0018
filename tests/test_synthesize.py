"""Tests for progress_sync.synthesize module."""

from dataclasses import replace
from pathlib import Path

import pytest

from progress_sync.drift import fingerprint
from progress_sync.markers import parse_markers
from progress_sync.models import PhaseStatus
from progress_sync.synthesize import synthesize

from .samples import FIXED_NOW, LATER, THREE_TASK_PLAN

PLAN_PATH = Path("/repo/plans/demo/plan.md")


def _synth(content, prior=None, now=FIXED_NOW, actor="main"):
    return synthesize(
        parse_markers(content), prior, content=content, plan_path=PLAN_PATH, now=now, actor=actor
    )


class TestBootstrap:
    """First synthesis with no prior checkpoint."""

    def test_three_task_scenario(self):
        """One done, two pending, no phase markers."""
        checkpoint = _synth(THREE_TASK_PLAN).checkpoint

        assert list(checkpoint.phases) == ["main"]
        assert checkpoint.phases["main"].status is PhaseStatus.IN_PROGRESS
        assert checkpoint.progress.total_tasks == 3
        assert checkpoint.progress.completed_tasks == 1
        assert checkpoint.progress.percentage == 33.3
        assert checkpoint.current_phase == "main"
        assert checkpoint.current_task == "t2"

    def test_stamps_metadata(self):
        checkpoint = _synth(THREE_TASK_PLAN).checkpoint

        assert checkpoint.plan_id == "demo"
        assert checkpoint.plan_path == str(PLAN_PATH.resolve())
        assert checkpoint.last_checkpoint == FIXED_NOW.isoformat()
        assert checkpoint.checksum == fingerprint(THREE_TASK_PLAN)

    def test_done_tasks_get_completion_stamp(self):
        result = _synth(THREE_TASK_PLAN, actor="agent-7")
        task = result.checkpoint.find_task("t1")

        assert task.completed_at == FIXED_NOW.isoformat()
        assert task.completed_by == "agent-7"
        assert result.newly_completed == ("t1",)

    def test_pending_tasks_have_no_stamp(self):
        task = _synth(THREE_TASK_PLAN).checkpoint.find_task("t2")

        assert task.completed_at is None
        assert task.completed_by is None

    def test_decisions_seeded_from_parse(self):
        content = THREE_TASK_PLAN + "<!-- DECISION: use JSON -->\n"

        checkpoint = _synth(content).checkpoint

        assert [(d.time, d.text) for d in checkpoint.decisions] == [
            (FIXED_NOW.isoformat(), "use JSON")
        ]

    def test_percentage_ties_round_up(self):
        """1 of 16 done is 6.25%, shown as 6.3."""
        content = "".join(
            f"- [{'x' if i == 0 else ' '}] Step {i} <!-- TASK: s{i} -->\n" for i in range(16)
        )

        progress = _synth(content).checkpoint.progress

        assert progress.completed_tasks == 1
        assert progress.percentage == 6.3

    def test_empty_document(self):
        """No markers at all still yields a valid checkpoint."""
        result = _synth("")
        checkpoint = result.checkpoint

        assert list(checkpoint.phases) == ["main"]
        assert checkpoint.phases["main"].status is PhaseStatus.PENDING
        assert checkpoint.progress.percentage == 0
        assert checkpoint.current_phase is None
        assert checkpoint.current_task is None
        assert result.newly_completed == ()


class TestPhaseAssignment:
    """All tasks land in the first declared phase."""

    CONTENT = """<!-- CHECKPOINT: setup -->
- [x] A <!-- TASK: a -->
<!-- CHECKPOINT: build -->
- [ ] B <!-- TASK: b -->
"""

    def test_tasks_go_to_first_declared_phase(self):
        checkpoint = _synth(self.CONTENT).checkpoint

        assert list(checkpoint.phases) == ["setup", "build"]
        assert list(checkpoint.phases["setup"].tasks) == ["a", "b"]
        assert checkpoint.phases["build"].tasks == {}

    def test_other_phases_stay_pending(self):
        checkpoint = _synth(self.CONTENT).checkpoint

        assert checkpoint.phases["setup"].status is PhaseStatus.IN_PROGRESS
        assert checkpoint.phases["build"].status is PhaseStatus.PENDING
        assert checkpoint.current_phase == "setup"
        assert checkpoint.current_task == "b"

    def test_all_done_completes_phase(self):
        content = self.CONTENT.replace("- [ ] B", "- [x] B")

        checkpoint = _synth(content).checkpoint

        assert checkpoint.phases["setup"].status is PhaseStatus.COMPLETED
        assert checkpoint.current_phase is None
        assert checkpoint.current_task is None
        assert checkpoint.progress.percentage == 100.0


class TestMergeWithPrior:
    """Synthesis against a prior checkpoint."""

    def test_task_flip_scenario(self):
        """t2 flips to done: newly completed, 66.7%, current moves to t3."""
        prior = _synth(THREE_TASK_PLAN).checkpoint
        content = THREE_TASK_PLAN.replace("- [ ] Wire API", "- [x] Wire API")

        result = _synth(content, prior, now=LATER)

        assert result.newly_completed == ("t2",)
        assert result.checkpoint.progress.percentage == 66.7
        assert result.checkpoint.current_task == "t3"
        assert result.checkpoint.find_task("t2").completed_at == LATER.isoformat()

    def test_completed_at_is_sticky(self):
        prior = _synth(THREE_TASK_PLAN, actor="alice").checkpoint
        content = THREE_TASK_PLAN.replace("Add docs", "Add API docs")

        result = _synth(content, prior, now=LATER, actor="bob")
        task = result.checkpoint.find_task("t1")

        assert task.completed_at == FIXED_NOW.isoformat()
        assert task.completed_by == "alice"
        assert result.newly_completed == ()

    def test_unchecked_task_loses_stamp(self):
        prior = _synth(THREE_TASK_PLAN).checkpoint
        content = THREE_TASK_PLAN.replace("- [x] Write schema", "- [ ] Write schema")

        checkpoint = _synth(content, prior, now=LATER).checkpoint
        task = checkpoint.find_task("t1")

        assert task.done is False
        assert task.completed_at is None
        assert checkpoint.current_task == "t1"

    def test_recheck_after_uncheck_is_newly_completed(self):
        first = _synth(THREE_TASK_PLAN).checkpoint
        unchecked = THREE_TASK_PLAN.replace("- [x] Write schema", "- [ ] Write schema")
        second = _synth(unchecked, first, now=LATER).checkpoint

        result = _synth(THREE_TASK_PLAN, second, now=LATER)

        assert result.newly_completed == ("t1",)
        assert result.checkpoint.find_task("t1").completed_at == LATER.isoformat()

    def test_new_task_already_done_is_newly_completed(self):
        prior = _synth(THREE_TASK_PLAN).checkpoint
        content = THREE_TASK_PLAN + "- [x] Hotfix <!-- TASK: t4 -->\n"

        result = _synth(content, prior, now=LATER)

        assert result.newly_completed == ("t4",)
        assert result.checkpoint.progress.total_tasks == 4

    def test_removed_task_disappears(self):
        prior = _synth(THREE_TASK_PLAN).checkpoint
        content = THREE_TASK_PLAN.replace("- [ ] Add docs <!-- TASK: t3 -->\n", "")

        checkpoint = _synth(content, prior, now=LATER).checkpoint

        assert checkpoint.find_task("t3") is None
        assert checkpoint.progress.total_tasks == 2

    def test_finds_prior_task_in_any_phase(self):
        """Stamps survive when the first declared phase changes."""
        prior = _synth(THREE_TASK_PLAN).checkpoint
        content = "<!-- CHECKPOINT: phase-1 -->\n" + THREE_TASK_PLAN

        checkpoint = _synth(content, prior, now=LATER).checkpoint

        assert checkpoint.find_task("t1").completed_at == FIXED_NOW.isoformat()
        assert list(checkpoint.phases) == ["phase-1"]

    def test_decisions_are_write_once(self):
        prior = _synth(THREE_TASK_PLAN + "<!-- DECISION: use JSON -->\n").checkpoint
        content = THREE_TASK_PLAN + "<!-- DECISION: use JSON -->\n<!-- DECISION: use YAML -->\n"

        checkpoint = _synth(content, prior, now=LATER).checkpoint

        assert checkpoint.decisions == prior.decisions

    def test_preserves_notes_and_agents(self):
        prior = replace(
            _synth(THREE_TASK_PLAN).checkpoint,
            session_notes="paused before API work",
            agents={"reviewer": {"round": 2}},
        )

        checkpoint = _synth(THREE_TASK_PLAN.replace("Wire", "Build"), prior, now=LATER).checkpoint

        assert checkpoint.session_notes == "paused before API work"
        assert checkpoint.agents == {"reviewer": {"round": 2}}

    def test_blockers_are_replaced(self):
        prior = _synth(THREE_TASK_PLAN + "<!-- BLOCKER: no creds -->\n").checkpoint
        content = THREE_TASK_PLAN + "<!-- BLOCKER: CI is red -->\n"

        checkpoint = _synth(content, prior, now=LATER).checkpoint

        assert checkpoint.blockers == ("CI is red",)


class TestFixedPoint:
    """Re-synthesizing against its own output changes nothing but the timestamp."""

    @pytest.mark.parametrize(
        "content",
        [
            THREE_TASK_PLAN,
            "",
            TestPhaseAssignment.CONTENT + "<!-- DECISION: x -->\n<!-- ACCEPT: nope -->\n",
        ],
    )
    def test_idempotent(self, content):
        first = _synth(content).checkpoint
        second = _synth(content, first, now=LATER).checkpoint

        assert second.last_checkpoint == LATER.isoformat()
        assert replace(second, last_checkpoint=first.last_checkpoint) == first
