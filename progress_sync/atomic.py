"""Atomic file write utilities for progress-sync.

Checkpoint state must never be observed half-written: a reader either sees
the previous state.json or the new one. Writes go to a temp file in the
same directory and are renamed into place, which is atomic on POSIX.

All functions return Result types for explicit error handling.

Security:
- Files are created with 0o600 permissions by default
- Parent directories are created with 0o700 permissions
- Temp files are cleaned up on failure
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from progress_sync.errors import Err, Ok, Result, SyncError

logger = logging.getLogger(__name__)


def atomic_write_text(
    path: Path,
    content: str,
    mode: int = 0o600,
) -> Result[Path, SyncError]:
    """Atomically write text content to a file.

    Creates parent directories if they don't exist.

    Args:
        path: Target file path
        content: Text content to write
        mode: File permissions (default 0o600 - owner read/write only)

    Returns:
        Ok(path) on success, Err(SyncError) on failure
    """
    path = Path(path)
    temp_path: str | None = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)

        # Temp file must live in the target directory for the rename to be atomic
        fd, temp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=f".{path.stem}_",
            suffix=f"{path.suffix}.tmp",
        )

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)

            os.chmod(temp_path, mode)
            os.replace(temp_path, path)

            logger.debug(f"Atomic write complete: {path}")
            return Ok(path)

        except Exception:
            _cleanup_temp(temp_path)
            raise

    except PermissionError as e:
        logger.error(f"Permission denied writing {path}: {e}")
        return Err(
            SyncError(
                code="ATOMIC_PERMISSION_DENIED",
                message=f"Permission denied writing to {path}",
                context={"path": str(path)},
            )
        )

    except OSError as e:
        logger.error(f"OS error writing {path}: {e}")
        return Err(
            SyncError(
                code="ATOMIC_WRITE_FAILED",
                message=f"Failed to write {path}: {e}",
                context={"path": str(path), "error": str(e)},
            )
        )


def atomic_write_json(
    path: Path,
    data: Any,
    mode: int = 0o600,
    indent: int | None = 2,
) -> Result[Path, SyncError]:
    """Atomically write JSON data to a file.

    Args:
        path: Target file path
        data: Data to serialize as JSON
        mode: File permissions (default 0o600)
        indent: JSON indentation (default 2, None for compact)

    Returns:
        Ok(path) on success, Err(SyncError) on failure
    """
    try:
        content = json.dumps(data, indent=indent, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.error(f"JSON serialization failed: {e}")
        return Err(
            SyncError(
                code="JSON_SERIALIZATION_FAILED",
                message=f"Failed to serialize data to JSON: {e}",
                context={"error": str(e)},
            )
        )

    return atomic_write_text(path, content, mode)


def atomic_write_yaml(
    path: Path,
    data: Any,
    mode: int = 0o600,
) -> Result[Path, SyncError]:
    """Atomically write YAML data to a file using yaml.safe_dump."""
    try:
        content = yaml.safe_dump(
            data,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    except yaml.YAMLError as e:
        logger.error(f"YAML serialization failed: {e}")
        return Err(
            SyncError(
                code="YAML_SERIALIZATION_FAILED",
                message=f"Failed to serialize data to YAML: {e}",
                context={"error": str(e)},
            )
        )

    return atomic_write_text(path, content, mode)


def append_jsonl(
    path: Path,
    record: dict[str, Any],
    mode: int = 0o600,
) -> Result[Path, SyncError]:
    """Append one record as a single JSON line.

    Appends are not atomic, but a single short write of one line is never
    interleaved with the previous content of the file.
    """
    path = Path(path)
    try:
        line = json.dumps(record, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as e:
        logger.error(f"JSONL serialization failed: {e}")
        return Err(
            SyncError(
                code="JSONL_SERIALIZATION_FAILED",
                message=f"Failed to serialize record to JSONL: {e}",
                context={"error": str(e)},
            )
        )

    try:
        path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        is_new = not path.exists()
        with open(path, "a", encoding="utf-8") as f:
            f.write(line)
        if is_new:
            os.chmod(path, mode)
        return Ok(path)
    except OSError as e:
        logger.error(f"OS error appending to {path}: {e}")
        return Err(
            SyncError(
                code="APPEND_FAILED",
                message=f"Failed to append to {path}: {e}",
                context={"path": str(path), "error": str(e)},
            )
        )


def _cleanup_temp(temp_path: str | None) -> None:
    """Remove a temp file, ignoring errors."""
    if temp_path is None:
        return

    try:
        os.unlink(temp_path)
        logger.debug(f"Cleaned up temp file: {temp_path}")
    except OSError:
        # Already gone
        pass
