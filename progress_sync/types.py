"""Branded ID types for progress-sync.

NewType aliases keep task, phase and plan identifiers from being mixed up
in signatures. They are plain strings at runtime.
"""

from typing import NewType

TaskId = NewType("TaskId", str)
PhaseId = NewType("PhaseId", str)
CriterionId = NewType("CriterionId", str)
PlanId = NewType("PlanId", str)

DEFAULT_PHASE = PhaseId("main")

__all__ = ["TaskId", "PhaseId", "CriterionId", "PlanId", "DEFAULT_PHASE"]
