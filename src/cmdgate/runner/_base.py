"""
Abstract base class for command runners.

A runner owns the spawn, capture, deadline, kill and reap lifecycle of
one command invocation. Both gateway modes go through the same runner.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cmdgate._types import ExecutionResult


class BaseRunner(ABC):
    """
    Abstract base for all runner implementations.

    Validation and policy failures are raised; a command that could not
    be spawned comes back as a result with ``success=False``.
    """

    @abstractmethod
    async def run(self, command: str, *, timeout: float | None = None) -> ExecutionResult:
        """
        Run a shell command after it passes the deny-list policy.

        Args:
            command: The command text. Surrounding whitespace is ignored.
            timeout: Seconds before the command is killed. Defaults to
                the runner's configured timeout.

        Returns:
            ExecutionResult with combined output and exit code.

        Raises:
            ValidationError: If the command is empty or too long.
            PermissionDenied: If the command matches a deny rule.
        """
        ...

    @abstractmethod
    async def run_task(self, name: str, *, timeout: float | None = None) -> ExecutionResult:
        """
        Run a named allow-list task with its fixed argv. No shell is used.

        Raises:
            ValidationError: If the task is not in the task table.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """
        Release runner resources and kill any command still in flight.

        Idempotent - safe to call multiple times.
        """
        ...

    async def __aenter__(self) -> BaseRunner:
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager, cleaning up resources."""
        await self.close()
