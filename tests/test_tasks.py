"""Tests for the allow-list task table."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from cmdgate import ConfigurationError, ValidationError
from cmdgate.tasks import (
    DEFAULT_TASKS,
    Task,
    available_tasks,
    build_tasks,
    resolve_task,
    task_names,
)


class TestDefaultTasks:
    """Tests for the built-in table."""

    def test_includes_date(self) -> None:
        assert "date" in DEFAULT_TASKS
        assert DEFAULT_TASKS["date"].argv == ("/bin/date",)

    def test_all_argv_absolute(self) -> None:
        for task in DEFAULT_TASKS.values():
            assert task.executable.startswith("/")

    def test_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            DEFAULT_TASKS["sh"] = Task("sh", ("/bin/sh",))  # type: ignore[index]

    def test_task_names_sorted(self) -> None:
        names = task_names()
        assert names == sorted(names)
        assert set(names) == set(DEFAULT_TASKS)


class TestResolveTask:
    """Tests for looking up tasks by identifier."""

    def test_known_task(self) -> None:
        assert resolve_task("disk").argv == ("/bin/df", "-h")

    @pytest.mark.parametrize("name", ["nope", "", "date;ls", "../date", "date ", "DATE"])
    def test_rejected(self, name: str) -> None:
        with pytest.raises(ValidationError, match="^task not allowed$"):
            resolve_task(name)


class TestBuildTasks:
    """Tests for building custom tables."""

    def test_builds_tuples(self) -> None:
        tasks = build_tasks({"list-tmp": ["/bin/ls", "/tmp"]})
        assert tasks["list-tmp"] == Task("list-tmp", ("/bin/ls", "/tmp"))

    @pytest.mark.parametrize(
        "entries",
        [
            {"bad name": ["/bin/ls"]},
            {"empty": []},
            {"relative": ["ls"]},
        ],
    )
    def test_rejects_invalid(self, entries: dict) -> None:
        with pytest.raises(ConfigurationError):
            build_tasks(entries)

    def test_available_tasks(self, temp_dir: Path) -> None:
        script = temp_dir / "ok.sh"
        script.write_text("#!/bin/sh\necho ok\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        plain = temp_dir / "plain.txt"
        plain.write_text("not executable")

        tasks = build_tasks(
            {
                "ok": [str(script)],
                "plain": [str(plain)],
                "gone": ["/nonexistent/tool"],
            }
        )
        assert available_tasks(tasks) == {"ok"}
