"""Session-start recovery.

Decides which source the live checkpoint comes from when a session starts.
Sources are tried in strict trust order, and a later source is only
consulted once every earlier one is known to be unavailable:

    A. live checkpoint, checksum matches plan   -> used as-is
    B. live checkpoint, checksum mismatch       -> re-synthesized against it
    C. no usable live checkpoint, backup exists -> backup adopted verbatim
    D. nothing stored, plan has markers         -> rebuilt from the plan
    E. nothing stored, no markers               -> no checkpoint

A present but matching live checkpoint is always authoritative over a
backup, even if the backup is newer.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from progress_sync.drift import has_drifted
from progress_sync.errors import StoreUnavailable, format_error
from progress_sync.markers import parse_markers
from progress_sync.models import Checkpoint
from progress_sync.store import CheckpointStore
from progress_sync.synthesize import synthesize

logger = logging.getLogger(__name__)


class Provenance(str, Enum):
    LIVE = "live"
    EXTERNAL_EDIT = "external_edit"
    BACKUP = "backup"
    REBUILT = "rebuilt"

    @property
    def label(self) -> str:
        """Human-readable source, used in resume headers."""
        return {
            Provenance.LIVE: "live checkpoint",
            Provenance.EXTERNAL_EDIT: "plan.md (external changes detected)",
            Provenance.BACKUP: "recovery.json",
            Provenance.REBUILT: "plan.md (initial parse)",
        }[self]


@dataclass(frozen=True)
class RecoveryOutcome:
    checkpoint: Checkpoint
    provenance: Provenance


def recover(
    store: CheckpointStore,
    plan_path: Path,
    content: str,
    *,
    now: datetime | None = None,
    actor: str = "main",
) -> RecoveryOutcome | None:
    """Select and persist the checkpoint for a starting session.

    Args:
        store: Store for the plan's .checkpoint directory
        plan_path: Path to plan.md
        content: Current plan.md content
        now: Timestamp for any synthesis; defaults to now
        actor: completed_by for tasks newly completed during synthesis

    Returns:
        RecoveryOutcome, or None when there is nothing to recover (state E)

    Raises:
        StoreUnavailable: if the store cannot be read or the new live
            checkpoint cannot be written. Nothing is logged to history in
            that case.
    """
    live = _unwrap(store.get_live())

    if live is not None:
        if not has_drifted(live.checksum, content):
            return RecoveryOutcome(checkpoint=live, provenance=Provenance.LIVE)

        logger.info(f"Plan {plan_path} changed outside a sync, re-synthesizing")
        result = synthesize(
            parse_markers(content), live, content=content, plan_path=plan_path, now=now, actor=actor
        )
        _persist(store, result.checkpoint)
        _record(
            store,
            "checksum_mismatch",
            action="resynthesized",
            tasksCompleted=len(result.newly_completed),
            progress=result.checkpoint.progress.percentage,
        )
        return RecoveryOutcome(checkpoint=result.checkpoint, provenance=Provenance.EXTERNAL_EDIT)

    backup = _unwrap(store.get_backup())
    if backup is not None:
        logger.info(f"Recovering {plan_path} from backup snapshot")
        _persist(store, backup)
        _record(store, "session_recovered", **{"from": "recovery.json"})
        return RecoveryOutcome(checkpoint=backup, provenance=Provenance.BACKUP)

    facts = parse_markers(content)
    if not facts.has_markers:
        logger.debug(f"No markers in {plan_path}, nothing to recover")
        return None

    logger.info(f"Building initial checkpoint from {plan_path}")
    result = synthesize(facts, None, content=content, plan_path=plan_path, now=now, actor=actor)
    _persist(store, result.checkpoint)
    _record(store, "checkpoint_created", **{"from": "plan_parse"})
    return RecoveryOutcome(checkpoint=result.checkpoint, provenance=Provenance.REBUILT)


def _unwrap(result) -> Checkpoint | None:
    if result.is_err():
        raise StoreUnavailable(format_error(result.unwrap_err()))
    return result.unwrap()


def _persist(store: CheckpointStore, checkpoint: Checkpoint) -> None:
    result = store.put_live(checkpoint)
    if result.is_err():
        raise StoreUnavailable(format_error(result.unwrap_err()))


def _record(store: CheckpointStore, event: str, **fields) -> None:
    result = store.append_history(event, **fields)
    if result.is_err():
        logger.warning(f"History entry {event} not recorded: {result.unwrap_err().message}")
