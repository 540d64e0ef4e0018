"""Shared fixtures for progress_sync tests."""

from pathlib import Path

import pytest

from .samples import THREE_TASK_PLAN


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root with an empty plans directory."""
    (tmp_path / "plans").mkdir()
    return tmp_path


@pytest.fixture
def plan_dir(project: Path) -> Path:
    """A plan directory holding the three-task plan."""
    directory = project / "plans" / "demo"
    directory.mkdir()
    (directory / "plan.md").write_text(THREE_TASK_PLAN)
    return directory


@pytest.fixture
def plan_path(plan_dir: Path) -> Path:
    return plan_dir / "plan.md"
