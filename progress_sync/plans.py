"""Plan file discovery.

Maps an edited file to the plan it belongs to, and finds the plan a new
session should resume. Layout:

    <project>/plans/<plan-id>/plan.md
    <project>/plans/<plan-id>/phase-01-setup.md
"""

import logging
import re
from pathlib import Path

from progress_sync.config import SyncConfig

logger = logging.getLogger(__name__)

PHASE_FILE_RE = re.compile(r"^phase-\d+")
PHASE_DOC_RE = re.compile(r"^phase-\d+.*\.md$")


def is_plan_file(file_path: str | Path | None, plans_dir: str = "plans") -> bool:
    """True for plan.md, phase-N*.md, or any file inside a plans directory."""
    if not file_path:
        return False

    path = Path(file_path)
    if path.name == "plan.md" or PHASE_DOC_RE.match(path.name):
        return True
    return plans_dir in path.parent.parts


def get_plan_directory(file_path: str | Path, plan_filename: str = "plan.md") -> Path | None:
    """Return the plan directory owning file_path.

    plan.md and phase files belong to their own directory. Any other file
    belongs to the nearest ancestor directory that contains plan.md.
    """
    path = Path(file_path)
    if path.name == plan_filename or PHASE_FILE_RE.match(path.name):
        return path.parent

    for current in path.parents:
        if (current / plan_filename).exists():
            return current
    return None


def find_active_plan(project_root: Path, config: SyncConfig) -> Path | None:
    """Find the plan directory whose plan.md was modified most recently.

    Args:
        project_root: Directory containing the plans directory
        config: Supplies the plans directory name and ignored subdirectories

    Returns:
        Plan directory, or None if there are no plans
    """
    plans_root = project_root / config.plans_dir
    if not plans_root.is_dir():
        return None

    candidates: list[tuple[float, Path]] = []
    try:
        for entry in plans_root.iterdir():
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            if entry.name in config.ignored_plan_dirs:
                continue
            plan_file = entry / config.plan_filename
            if plan_file.is_file():
                candidates.append((plan_file.stat().st_mtime, entry))
    except OSError as e:
        logger.warning(f"Failed to scan {plans_root}: {e}")
        return None

    if not candidates:
        return None

    candidates.sort(key=lambda c: c[0], reverse=True)
    return candidates[0][1]
