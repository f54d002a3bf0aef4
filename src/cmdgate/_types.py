"""
Core type definitions for cmdgate.

Uses frozen dataclasses so results and verdicts cannot change after
they are handed back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cmdgate.errors import InfrastructureError

# Reserved exit codes. Real exit statuses are always in 0..255.
NOT_EXECUTED = -1
ABNORMAL_EXIT = -1
TIMEOUT_EXIT = -2


class GatewayMode(Enum):
    """Operating configuration of the gateway."""

    ALLOWLIST = "allowlist"  # Named tasks only, fixed argv, no shell
    COMMAND = "command"  # Arbitrary shell command screened by the deny-list


@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of classifying one command."""

    allowed: bool
    reason: str | None = None

    @classmethod
    def allow(cls) -> Verdict:
        return cls(allowed=True)

    @classmethod
    def block(cls, reason: str) -> Verdict:
        return cls(allowed=False, reason=reason)

    @property
    def blocked(self) -> bool:
        return not self.allowed


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """
    Immutable result of one command execution.

    ``success`` is transport-level: it is False only when the child could
    not be spawned. A command that ran and exited non-zero is still a
    success, with the status carried in ``exit_code``.
    """

    success: bool
    exit_code: int
    timed_out: bool = False
    output: bytes = b""
    error_message: str | None = None

    @classmethod
    def failed(cls, message: str) -> ExecutionResult:
        """Build the result for a command that never ran."""
        return cls(success=False, exit_code=NOT_EXECUTED, error_message=message)

    @property
    def text(self) -> str:
        """Combined output decoded as UTF-8, invalid bytes replaced."""
        return self.output.decode("utf-8", errors="replace")

    @property
    def is_clean_exit(self) -> bool:
        """True if the command ran, was not killed, and exited 0."""
        return self.success and not self.timed_out and self.exit_code == 0

    def raise_for_infrastructure(self) -> None:
        """Raise InfrastructureError if the command could not be started."""
        if not self.success:
            raise InfrastructureError(self.error_message or "command could not be started")
