"""progress-sync: structured checkpoints for plan.md progress markers."""

__version__ = "0.3.0"

# Branded types for type-safe IDs
from progress_sync.types import CriterionId, PhaseId, PlanId, TaskId

__all__ = [
    "__version__",
    "CriterionId",
    "PhaseId",
    "PlanId",
    "TaskId",
]
