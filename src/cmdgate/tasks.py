"""
Static task table for allow-list mode.

Each task maps to a fixed executable path and argument vector. Nothing
the caller sends ever reaches the argv, so no shell is involved.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from cmdgate.errors import ConfigurationError, ValidationError

TASK_NAME = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True, slots=True)
class Task:
    """A named, pre-approved command."""

    name: str
    argv: tuple[str, ...]
    description: str = ""

    @property
    def executable(self) -> str:
        return self.argv[0]


def _table(*tasks: Task) -> Mapping[str, Task]:
    return MappingProxyType({task.name: task for task in tasks})


DEFAULT_TASKS: Mapping[str, Task] = _table(
    Task("date", ("/bin/date",), "Current date and time"),
    Task("uptime", ("/usr/bin/uptime",), "System uptime and load averages"),
    Task("disk", ("/bin/df", "-h"), "Filesystem disk usage"),
    Task("memory", ("/usr/bin/free", "-m"), "Memory usage in megabytes"),
    Task("whoami", ("/usr/bin/whoami",), "User the gateway runs as"),
    Task("hostname", ("/bin/hostname",), "Host name"),
    Task("kernel", ("/bin/uname", "-a"), "Kernel and platform information"),
)


def build_tasks(entries: Mapping[str, list[str] | tuple[str, ...]]) -> Mapping[str, Task]:
    """
    Build an immutable task table from ``name -> argv`` pairs.

    Raises:
        ConfigurationError: If a name is not a valid task identifier or
            an argv is empty or not absolute.
    """
    tasks = []
    for name, argv in entries.items():
        if not TASK_NAME.fullmatch(name):
            raise ConfigurationError(f"Invalid task name: {name!r}")
        if not argv:
            raise ConfigurationError(f"Task {name!r} has an empty argv")
        if not os.path.isabs(argv[0]):
            raise ConfigurationError(f"Task {name!r} must use an absolute executable path")
        tasks.append(Task(name, tuple(argv)))
    return _table(*tasks)


def resolve_task(name: str, tasks: Mapping[str, Task] = DEFAULT_TASKS) -> Task:
    """
    Look up a task by identifier.

    Raises:
        ValidationError: If the identifier is malformed or not in the table.
    """
    if not TASK_NAME.fullmatch(name) or name not in tasks:
        raise ValidationError("task not allowed")
    return tasks[name]


def task_names(tasks: Mapping[str, Task] = DEFAULT_TASKS) -> list[str]:
    """Return the permitted task identifiers, sorted."""
    return sorted(tasks)


def available_tasks(tasks: Mapping[str, Task] = DEFAULT_TASKS) -> set[str]:
    """Return the tasks whose executable exists and is runnable on this host."""
    return {
        name
        for name, task in tasks.items()
        if os.path.isfile(task.executable) and os.access(task.executable, os.X_OK)
    }
