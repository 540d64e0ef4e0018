"""File-backed checkpoint store.

Each plan directory keeps its durable state under ``.checkpoint/``:

- state.json: the live checkpoint, replaced atomically
- history.jsonl: append-only log, one ``{"ts": ..., "event": ..., ...}`` per line
- recovery.json: backup snapshot ``{"savedAt", "reason", "state"}``

Reads distinguish three outcomes. A missing file is Ok(None). A file that
exists but does not hold a valid checkpoint is also Ok(None) (logged),
so recovery falls through to the next source. An I/O failure is Err, and
the caller abandons the invocation.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from progress_sync.atomic import append_jsonl, atomic_write_json
from progress_sync.errors import Result, SyncError, err, ok
from progress_sync.models import Checkpoint

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"
HISTORY_FILE = "history.jsonl"
RECOVERY_FILE = "recovery.json"


class CheckpointStore:
    """Durable state for a single plan."""

    def __init__(self, checkpoint_dir: Path):
        self.checkpoint_dir = Path(checkpoint_dir)

    @property
    def state_path(self) -> Path:
        return self.checkpoint_dir / STATE_FILE

    @property
    def history_path(self) -> Path:
        return self.checkpoint_dir / HISTORY_FILE

    @property
    def recovery_path(self) -> Path:
        return self.checkpoint_dir / RECOVERY_FILE

    # ------------------------------------------------------------------
    # Live checkpoint
    # ------------------------------------------------------------------

    def get_live(self) -> Result[Checkpoint | None, SyncError]:
        data = self._read_json(self.state_path)
        if data.is_err():
            return data
        raw = data.unwrap()
        if raw is None:
            return ok(None)
        return ok(self._to_checkpoint(raw, self.state_path))

    def put_live(self, checkpoint: Checkpoint) -> Result[Path, SyncError]:
        return atomic_write_json(self.state_path, checkpoint.to_dict())

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def append_history(self, event: str, **fields: Any) -> Result[Path, SyncError]:
        """Append an event to the history log, stamped with the current time."""
        record = {"ts": datetime.now(UTC).isoformat(), "event": event, **fields}
        return append_jsonl(self.history_path, record)

    def read_history(self) -> list[dict[str, Any]]:
        """Read all history entries, skipping malformed lines."""
        if not self.history_path.exists():
            return []

        entries = []
        with open(self.history_path, encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed history line in {self.history_path}")
                    continue
                if isinstance(entry, dict):
                    entries.append(entry)
        return entries

    def history_count(self) -> int:
        """Number of non-empty lines in the history log."""
        if not self.history_path.exists():
            return 0
        with open(self.history_path, encoding="utf-8") as f:
            return sum(1 for line in f if line.strip())

    # ------------------------------------------------------------------
    # Backup snapshot
    # ------------------------------------------------------------------

    def get_backup(self) -> Result[Checkpoint | None, SyncError]:
        data = self._read_json(self.recovery_path)
        if data.is_err():
            return data
        raw = data.unwrap()
        if raw is None:
            return ok(None)
        if not isinstance(raw, dict) or "state" not in raw:
            logger.warning(f"Corrupt recovery backup {self.recovery_path}: missing 'state'")
            return ok(None)
        return ok(self._to_checkpoint(raw["state"], self.recovery_path))

    def put_backup(self, checkpoint: Checkpoint, reason: str) -> bool:
        """Write a backup snapshot. Best effort: failures are logged, not raised."""
        backup = {
            "savedAt": datetime.now(UTC).isoformat(),
            "reason": reason,
            "state": checkpoint.to_dict(),
        }
        result = atomic_write_json(self.recovery_path, backup)
        if result.is_err():
            logger.warning(f"Recovery backup failed: {result.unwrap_err().message}")
            return False
        return True

    # ------------------------------------------------------------------

    def _read_json(self, path: Path) -> Result[Any, SyncError]:
        """Read a JSON file. Missing or unparseable content is Ok(None)."""
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ok(None)
        except UnicodeDecodeError as e:
            logger.warning(f"Undecodable content in {path}: {e}")
            return ok(None)
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            return err(
                SyncError(
                    code="STORE_UNAVAILABLE",
                    message=f"Failed to read {path}: {e}",
                    context={"path": str(path), "error": str(e)},
                )
            )

        try:
            return ok(json.loads(text))
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt JSON in {path}: {e}")
            return ok(None)

    @staticmethod
    def _to_checkpoint(raw: Any, path: Path) -> Checkpoint | None:
        try:
            return Checkpoint.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Invalid checkpoint in {path}: {e}")
            return None
