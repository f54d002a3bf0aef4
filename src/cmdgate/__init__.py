"""
Top-level facade for cmdgate.
"""

from cmdgate._types import (
    ABNORMAL_EXIT,
    NOT_EXECUTED,
    TIMEOUT_EXIT,
    ExecutionResult,
    GatewayMode,
    Verdict,
)
from cmdgate.config import GatewayConfig
from cmdgate.errors import (
    CmdGateError,
    ConfigurationError,
    InfrastructureError,
    PermissionDenied,
    Unauthorized,
    ValidationError,
)
from cmdgate.runner import BaseRunner, LocalRunner
from cmdgate.security.policy import CommandPolicy, classify
from cmdgate.server import create_app


# Factory
def Runner(config: GatewayConfig | None = None, **kwargs) -> BaseRunner:
    """
    Create a runner for a gateway configuration.

    Keyword arguments are passed through to LocalRunner (``policy``,
    ``cwd``, ``env``).
    """
    return LocalRunner((config or GatewayConfig()).validate(), **kwargs)


# Exports
__all__ = [
    "Runner",
    "BaseRunner",
    "LocalRunner",
    "GatewayConfig",
    "GatewayMode",
    "CommandPolicy",
    "classify",
    "create_app",
    "ExecutionResult",
    "Verdict",
    "ABNORMAL_EXIT",
    "NOT_EXECUTED",
    "TIMEOUT_EXIT",
    "CmdGateError",
    "ConfigurationError",
    "InfrastructureError",
    "PermissionDenied",
    "Unauthorized",
    "ValidationError",
]
