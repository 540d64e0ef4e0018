"""Tests for progress_sync.atomic module."""

import json
import os
import stat
from pathlib import Path

import pytest
import yaml

from progress_sync.atomic import (
    append_jsonl,
    atomic_write_json,
    atomic_write_text,
    atomic_write_yaml,
)


def _is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


class TestAtomicWriteText:
    """Tests for atomic_write_text()."""

    def test_creates_file(self, tmp_path: Path):
        """atomic_write_text creates a new file."""
        file_path = tmp_path / "state.json"

        result = atomic_write_text(file_path, "hello world")

        assert result.is_ok()
        assert result.unwrap() == file_path
        assert file_path.read_text() == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path):
        """atomic_write_text replaces existing content."""
        file_path = tmp_path / "state.json"
        file_path.write_text("old content")

        result = atomic_write_text(file_path, "new content")

        assert result.is_ok()
        assert file_path.read_text() == "new content"

    def test_creates_parent_directories(self, tmp_path: Path):
        """atomic_write_text creates the .checkpoint directory if needed."""
        file_path = tmp_path / "plans" / "demo" / ".checkpoint" / "state.json"

        result = atomic_write_text(file_path, "content")

        assert result.is_ok()
        assert file_path.read_text() == "content"

    def test_sets_default_permissions(self, tmp_path: Path):
        """atomic_write_text sets 0o600 permissions by default."""
        file_path = tmp_path / "state.json"

        result = atomic_write_text(file_path, "content")

        assert result.is_ok()
        mode = file_path.stat().st_mode
        assert mode & stat.S_IRWXU == stat.S_IRUSR | stat.S_IWUSR
        assert mode & stat.S_IRWXG == 0
        assert mode & stat.S_IRWXO == 0

    def test_no_temp_files_left_behind(self, tmp_path: Path):
        """Successful writes leave no temp files."""
        file_path = tmp_path / "state.json"

        for i in range(5):
            assert atomic_write_text(file_path, f"content-{i}").is_ok()

        assert list(tmp_path.glob(".*tmp")) == []

    def test_failed_write_keeps_previous_content(self, tmp_path: Path):
        """A failing write never leaves a partial file in place."""
        if os.name == "nt" or _is_root():
            pytest.skip("Permission test needs a non-root POSIX user")

        file_path = tmp_path / "state.json"
        file_path.write_text('{"old": true}')
        tmp_path.chmod(0o555)

        try:
            result = atomic_write_text(file_path, '{"new": true}')

            assert result.is_err()
            assert result.unwrap_err().code in ("ATOMIC_PERMISSION_DENIED", "ATOMIC_WRITE_FAILED")
            assert file_path.read_text() == '{"old": true}'
        finally:
            tmp_path.chmod(0o755)

    def test_write_into_file_path_fails(self, tmp_path: Path):
        """A parent that is a regular file returns Err instead of raising."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")

        result = atomic_write_text(blocker / "state.json", "content")

        assert result.is_err()
        assert result.unwrap_err().code == "ATOMIC_WRITE_FAILED"


class TestAtomicWriteJson:
    """Tests for atomic_write_json()."""

    def test_creates_json_file(self, tmp_path: Path):
        file_path = tmp_path / "state.json"
        data = {"planId": "demo", "progress": {"percentage": 33.3}}

        result = atomic_write_json(file_path, data)

        assert result.is_ok()
        assert json.loads(file_path.read_text()) == data

    def test_compact_json_with_no_indent(self, tmp_path: Path):
        file_path = tmp_path / "state.json"

        result = atomic_write_json(file_path, {"a": 1, "b": 2}, indent=None)

        assert result.is_ok()
        assert "\n" not in file_path.read_text().strip()

    def test_handles_non_serializable_data(self, tmp_path: Path):
        """Non-serializable data is an Err, and nothing is written."""
        file_path = tmp_path / "state.json"

        result = atomic_write_json(file_path, {"func": lambda x: x})

        assert result.is_err()
        assert result.unwrap_err().code == "JSON_SERIALIZATION_FAILED"
        assert not file_path.exists()

    def test_preserves_unicode(self, tmp_path: Path):
        file_path = tmp_path / "state.json"

        result = atomic_write_json(file_path, {"blocker": "待機中 → infra"})

        assert result.is_ok()
        assert json.loads(file_path.read_text())["blocker"] == "待機中 → infra"


class TestAtomicWriteYaml:
    """Tests for atomic_write_yaml()."""

    def test_creates_yaml_file(self, tmp_path: Path):
        file_path = tmp_path / "config.yaml"
        data = {"backup_interval": 3, "ignored_plan_dirs": ["templates"]}

        result = atomic_write_yaml(file_path, data)

        assert result.is_ok()
        assert yaml.safe_load(file_path.read_text()) == data

    def test_handles_non_serializable_data(self, tmp_path: Path):
        class CustomObject:
            pass

        result = atomic_write_yaml(tmp_path / "config.yaml", {"obj": CustomObject()})

        assert result.is_err()
        assert result.unwrap_err().code == "YAML_SERIALIZATION_FAILED"


class TestAppendJsonl:
    """Tests for append_jsonl()."""

    def test_appends_one_line_per_record(self, tmp_path: Path):
        file_path = tmp_path / "history.jsonl"

        append_jsonl(file_path, {"event": "a"})
        append_jsonl(file_path, {"event": "b"})

        lines = file_path.read_text().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["a", "b"]

    def test_creates_parent_directory(self, tmp_path: Path):
        file_path = tmp_path / ".checkpoint" / "history.jsonl"

        result = append_jsonl(file_path, {"event": "a"})

        assert result.is_ok()
        assert file_path.exists()

    def test_non_serializable_record_writes_nothing(self, tmp_path: Path):
        file_path = tmp_path / "history.jsonl"

        result = append_jsonl(file_path, {"bad": object()})

        assert result.is_err()
        assert result.unwrap_err().code == "JSONL_SERIALIZATION_FAILED"
        assert not file_path.exists()
