"""Tests for progress_sync.plans module."""

import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from progress_sync.config import SyncConfig
from progress_sync.plans import find_active_plan, get_plan_directory, is_plan_file


def _make_plan(root: Path, name: str, age: float = 0) -> Path:
    directory = root / "plans" / name
    directory.mkdir(parents=True)
    plan = directory / "plan.md"
    plan.write_text("- [ ] x <!-- TASK: x -->\n")
    if age:
        stamp = time.time() - age
        os.utime(plan, (stamp, stamp))
    return directory


class TestIsPlanFile:
    """Tests for is_plan_file()."""

    @pytest.mark.parametrize(
        "path",
        [
            "/repo/plans/demo/plan.md",
            "/elsewhere/plan.md",
            "/repo/plans/demo/phase-01-setup.md",
            "/repo/plans/demo/notes.txt",
        ],
    )
    def test_plan_files(self, path):
        assert is_plan_file(path) is True

    @pytest.mark.parametrize(
        "path",
        ["/repo/src/app.py", "/repo/README.md", "/repo/phase-notes.md", "", None],
    )
    def test_other_files(self, path):
        assert is_plan_file(path) is False

    def test_custom_plans_dir(self):
        assert is_plan_file("/repo/roadmap/q3/notes.md", plans_dir="roadmap") is True
        assert is_plan_file("/repo/plans/q3/notes.md", plans_dir="roadmap") is False


class TestGetPlanDirectory:
    """Tests for get_plan_directory()."""

    def test_plan_md_owns_its_directory(self):
        assert get_plan_directory("/repo/plans/demo/plan.md") == Path("/repo/plans/demo")

    def test_phase_file_owns_its_directory(self):
        path = "/repo/plans/demo/phase-02-api.md"

        assert get_plan_directory(path) == Path("/repo/plans/demo")

    def test_nested_file_finds_ancestor(self, plan_dir):
        nested = plan_dir / "research" / "notes.md"
        nested.parent.mkdir()
        nested.write_text("notes")

        assert get_plan_directory(nested) == plan_dir

    def test_no_ancestor_plan(self, tmp_path):
        orphan = tmp_path / "plans" / "draft" / "notes.md"

        assert get_plan_directory(orphan) is None


class TestFindActivePlan:
    """Tests for find_active_plan()."""

    def test_most_recent_wins(self, tmp_path):
        _make_plan(tmp_path, "old", age=7200)
        newest = _make_plan(tmp_path, "current")
        _make_plan(tmp_path, "middle", age=60)

        assert find_active_plan(tmp_path, SyncConfig()) == newest

    @pytest.mark.parametrize("name", ["templates", "reports", ".archive"])
    def test_ignored_directories(self, tmp_path, name):
        expected = _make_plan(tmp_path, "real", age=3600)
        _make_plan(tmp_path, name)

        assert find_active_plan(tmp_path, SyncConfig()) == expected

    def test_custom_ignore_list(self, tmp_path):
        _make_plan(tmp_path, "old", age=3600)
        templates = _make_plan(tmp_path, "templates")

        config = SyncConfig(ignored_plan_dirs=["drafts"])

        assert find_active_plan(tmp_path, config) == templates

    def test_directory_without_plan_md_skipped(self, tmp_path):
        expected = _make_plan(tmp_path, "real", age=3600)
        (tmp_path / "plans" / "empty").mkdir()

        assert find_active_plan(tmp_path, SyncConfig()) == expected

    def test_no_plans_dir(self, tmp_path):
        assert find_active_plan(tmp_path, SyncConfig()) is None

    def test_empty_plans_dir(self, project):
        assert find_active_plan(project, SyncConfig()) is None

    def test_scan_error_returns_none(self, tmp_path):
        _make_plan(tmp_path, "real")

        with patch.object(Path, "iterdir", side_effect=PermissionError("denied")):
            assert find_active_plan(tmp_path, SyncConfig()) is None
