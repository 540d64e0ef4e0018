"""Plain-text rendering of checkpoints for the host session.

Output is injected into the session as context, so it stays compact:

    [Progress Sync] Resuming: auth-rewrite
    ━━━━━━━━━━━━━─────── 66.7% (2/3 tasks)

    ◐ main (2/3)
      → [ ] Wire API
    ...
"""

from datetime import UTC, datetime
from pathlib import Path

from progress_sync.events import ChangeReport
from progress_sync.models import Checkpoint, PhaseStatus
from progress_sync.recovery import Provenance

PREFIX = "[Progress Sync]"
MAX_PENDING_SHOWN = 3

STATUS_ICONS = {
    PhaseStatus.COMPLETED: "✓",
    PhaseStatus.IN_PROGRESS: "◐",
    PhaseStatus.PENDING: "○",
}


def progress_bar(percentage: float, width: int = 20) -> str:
    filled = max(0, min(width, round(percentage / 100 * width)))
    return "━" * filled + "─" * (width - filled)


def format_relative_time(timestamp: str | None, now: datetime | None = None) -> str:
    """Format an ISO timestamp as "just now", "5m ago", "3h ago", "2d ago" or a date."""
    if not timestamp:
        return "unknown"

    try:
        then = datetime.fromisoformat(timestamp)
    except ValueError:
        return "unknown"
    if then.tzinfo is None:
        then = then.replace(tzinfo=UTC)

    now = now or datetime.now(UTC)
    seconds = (now - then).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return then.date().isoformat()


def format_change_line(report: ChangeReport) -> str:
    """One-line summary printed after tasks are completed."""
    return (
        f"{PREFIX} +{len(report.newly_completed)} task(s) → {report.percentage}% "
        f"({report.completed_tasks}/{report.total_tasks})"
    )


def format_resume_context(
    checkpoint: Checkpoint,
    plan_dir: Path,
    provenance: Provenance = Provenance.LIVE,
    now: datetime | None = None,
) -> str:
    """Render the resume summary shown at session start."""
    lines = []

    if provenance is Provenance.LIVE:
        lines.append(f"{PREFIX} Resuming: {Path(plan_dir).name}")
    else:
        lines.append(f"{PREFIX} Recovered from {provenance.label}")

    progress = checkpoint.progress
    lines.append(
        f"{progress_bar(progress.percentage)} {progress.percentage}% "
        f"({progress.completed_tasks}/{progress.total_tasks} tasks)"
    )
    lines.append("")

    for phase_id, phase in checkpoint.phases.items():
        icon = STATUS_ICONS.get(phase.status, "○")
        lines.append(f"{icon} {phase_id} ({phase.completed_count()}/{len(phase.tasks)})")

        if phase.status is PhaseStatus.IN_PROGRESS:
            pending = phase.pending_tasks()
            for task in pending[:MAX_PENDING_SHOWN]:
                marker = "  → " if task.id == checkpoint.current_task else "    "
                lines.append(f"{marker}[ ] {task.description or task.id}")
            if len(pending) > MAX_PENDING_SHOWN:
                lines.append(f"    ... +{len(pending) - MAX_PENDING_SHOWN} more")

    if checkpoint.current_task:
        lines.append("")
        lines.append(f"Next: {checkpoint.current_task}")

    if checkpoint.session_notes:
        lines.append(f'Notes: "{checkpoint.session_notes}"')

    lines.append(f"Last checkpoint: {format_relative_time(checkpoint.last_checkpoint, now)}")

    if checkpoint.blockers:
        lines.append("")
        lines.append("Blockers:")
        for blocker in checkpoint.blockers:
            lines.append(f"  ! {blocker}")

    return "\n".join(lines)
