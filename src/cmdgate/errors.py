"""
Error hierarchy for cmdgate.

Every per-request failure is scoped to that request; none of these are
fatal to the server process.
"""

from __future__ import annotations


class CmdGateError(Exception):
    """Base error for all cmdgate failures."""


class ConfigurationError(CmdGateError):
    """Raised at startup when the gateway configuration is invalid."""


class Unauthorized(CmdGateError):
    """Raised when the caller presented no token or the wrong one."""


class ValidationError(CmdGateError):
    """Raised for an empty or oversized command, or an unknown task."""


class PermissionDenied(CmdGateError):
    """
    Raised when the command matches a deny rule.

    Attributes:
        reason: Human-readable reason from the matching rule.
        command: The command that was blocked.
    """

    def __init__(self, reason: str, command: str = "") -> None:
        self.reason = reason
        self.command = command
        super().__init__(f"blocked command: {reason}")


class InfrastructureError(CmdGateError):
    """Raised when the pipe or child process could not be created."""
