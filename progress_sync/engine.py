"""Sync engine: one invocation per host event.

The engine is the error boundary between the host and the checkpoint
code. Every failure, including an unreadable or unwritable store, is
logged and turned into "do nothing this invocation". No exception
escapes handle().

Change flow:

    plan.md edited -> drift gate -> parse -> synthesize -> state.json
                   -> history.jsonl -> recovery.json every N entries

Session-start flow:

    find active plan -> recover() -> ResumeReport
"""

import logging
from datetime import datetime
from pathlib import Path

from progress_sync.config import SyncConfig
from progress_sync.drift import has_drifted
from progress_sync.errors import StoreUnavailable, format_error
from progress_sync.events import (
    ChangeReport,
    DocumentChanged,
    ResumeReport,
    SessionStarted,
    SyncEvent,
)
from progress_sync.markers import parse_markers
from progress_sync.plans import find_active_plan, get_plan_directory, is_plan_file
from progress_sync.recovery import recover
from progress_sync.store import CheckpointStore
from progress_sync.synthesize import synthesize

logger = logging.getLogger(__name__)

PERIODIC_BACKUP_REASON = "periodic_backup"


class SyncEngine:
    """Runs checkpoint synchronization for host events."""

    def __init__(self, config: SyncConfig | None = None, now: datetime | None = None):
        self.config = config or SyncConfig()
        self._now = now

    @property
    def disabled(self) -> bool:
        return self.config.disabled

    def store_for(self, plan_dir: Path) -> CheckpointStore:
        return CheckpointStore(plan_dir / self.config.checkpoint_dirname)

    def handle(self, event: SyncEvent) -> ChangeReport | ResumeReport | None:
        """Dispatch an event. Never raises."""
        match event:
            case DocumentChanged():
                return self.handle_document_changed(event)
            case SessionStarted():
                return self.handle_session_started(event)
            case _:
                return None

    # ------------------------------------------------------------------
    # Document changed
    # ------------------------------------------------------------------

    def handle_document_changed(self, event: DocumentChanged) -> ChangeReport | None:
        """Sync the checkpoint after a plan edit.

        Returns:
            ChangeReport when a new checkpoint was written, None otherwise
            (disabled, not a plan file, unchanged plan, or any failure)
        """
        if self.disabled:
            return None
        try:
            return self._sync_change(event)
        except Exception as e:
            logger.warning(f"Checkpoint sync failed for {event.file_path}: {e}")
            return None

    def _sync_change(self, event: DocumentChanged) -> ChangeReport | None:
        if not is_plan_file(event.file_path, self.config.plans_dir):
            return None

        plan_dir = get_plan_directory(event.file_path, self.config.plan_filename)
        if plan_dir is None:
            return None

        plan_path = plan_dir / self.config.plan_filename
        if not plan_path.is_file():
            return None

        content = plan_path.read_text(encoding="utf-8")
        store = self.store_for(plan_dir)

        live_result = store.get_live()
        if live_result.is_err():
            logger.warning(f"Skipping sync: {format_error(live_result.unwrap_err())}")
            return None
        prior = live_result.unwrap()

        if prior is not None and not has_drifted(prior.checksum, content):
            logger.debug(f"Plan {plan_path} unchanged, skipping")
            return None

        result = synthesize(
            parse_markers(content),
            prior,
            content=content,
            plan_path=plan_path,
            now=self._now,
            actor=self.config.actor,
        )
        checkpoint = result.checkpoint

        write = store.put_live(checkpoint)
        if write.is_err():
            logger.warning(f"Failed to write checkpoint: {format_error(write.unwrap_err())}")
            return None

        history = store.append_history(
            "checkpoint_updated",
            tool=event.tool_name,
            file=Path(event.file_path).name,
            tasksCompleted=len(result.newly_completed),
            progress=checkpoint.progress.percentage,
        )
        if history.is_err():
            logger.warning(f"History not recorded: {format_error(history.unwrap_err())}")
        else:
            self._maybe_backup(store, checkpoint)

        return ChangeReport.from_checkpoint(checkpoint, result.newly_completed)

    def _maybe_backup(self, store: CheckpointStore, checkpoint) -> None:
        interval = self.config.backup_interval
        if interval <= 0:
            return
        count = store.history_count()
        if count and count % interval == 0:
            logger.debug(f"Writing periodic backup at history entry {count}")
            store.put_backup(checkpoint, PERIODIC_BACKUP_REASON)

    # ------------------------------------------------------------------
    # Session started
    # ------------------------------------------------------------------

    def handle_session_started(self, event: SessionStarted) -> ResumeReport | None:
        """Load or recover the active plan's checkpoint.

        Returns:
            ResumeReport when the resulting checkpoint tracks at least one
            task, None otherwise
        """
        if self.disabled:
            return None
        try:
            return self._resume(event)
        except StoreUnavailable as e:
            logger.warning(f"Checkpoint store unavailable: {e}")
            return None
        except Exception as e:
            logger.warning(f"Session resume failed: {e}")
            return None

    def _resume(self, event: SessionStarted) -> ResumeReport | None:
        plan_dir = find_active_plan(Path(event.project_root), self.config)
        if plan_dir is None:
            return None

        plan_path = plan_dir / self.config.plan_filename
        content = plan_path.read_text(encoding="utf-8")

        outcome = recover(
            self.store_for(plan_dir),
            plan_path,
            content,
            now=self._now,
            actor=self.config.actor,
        )
        if outcome is None or outcome.checkpoint.progress.total_tasks == 0:
            return None

        return ResumeReport(
            checkpoint=outcome.checkpoint,
            plan_dir=plan_dir,
            provenance=outcome.provenance,
        )
