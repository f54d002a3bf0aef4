from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

from cmdgate._types import GatewayMode
from cmdgate.errors import ConfigurationError
from cmdgate.security.policy import CommandPolicy
from cmdgate.tasks import DEFAULT_TASKS, Task

logger = logging.getLogger(__name__)

MAX_COMMAND_LENGTH = 4096
DEFAULT_TIMEOUT = 20.0
DEFAULT_PORT = 8081


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def parse_mode(value: str | GatewayMode) -> GatewayMode:
    """Parse a mode name (``allowlist`` or ``command``)."""
    if isinstance(value, GatewayMode):
        return value
    try:
        return GatewayMode(value.strip().lower())
    except ValueError:
        choices = ", ".join(m.value for m in GatewayMode)
        raise ConfigurationError(f"Unknown mode {value!r} (expected one of: {choices})") from None


@dataclass(frozen=True)
class GatewayConfig:
    """
    Gateway configuration, built once at startup.

    The instance is never mutated, so it can be shared by every request
    without locking. Use ``dataclasses.replace`` to derive a variant.

    Notes
    - ``token=None`` is allowed: the gateway starts, but every execution
      request is rejected as unauthorized.
    """

    mode: GatewayMode = GatewayMode.COMMAND
    token: str | None = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    max_command_length: int = MAX_COMMAND_LENGTH
    shell: str = "/bin/bash"
    tasks: Mapping[str, Task] = field(default_factory=lambda: DEFAULT_TASKS)
    policy: CommandPolicy = field(default_factory=CommandPolicy.standard)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> GatewayConfig:
        token = os.getenv("CMD_SERVICE_TOKEN") or None
        return cls(
            mode=parse_mode(os.getenv("CMDGATE_MODE", GatewayMode.COMMAND.value)),
            token=token,
            host=os.getenv("CMDGATE_HOST", "0.0.0.0"),
            port=_int_env("CMDGATE_PORT", DEFAULT_PORT),
            timeout=_float_env("CMDGATE_TIMEOUT", DEFAULT_TIMEOUT),
            shell=os.getenv("CMDGATE_SHELL", "/bin/bash"),
            log_level=os.getenv("CMDGATE_LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> GatewayConfig:
        """
        Check the configuration for values that would break the service.

        Returns:
            The same config, so calls can be chained.

        Raises:
            ConfigurationError: On an unusable value.
        """
        if not isinstance(self.mode, GatewayMode):
            raise ConfigurationError(f"Invalid mode: {self.mode!r}")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port out of range: {self.port}")
        if self.max_command_length <= 0:
            raise ConfigurationError("max_command_length must be positive")
        if self.mode is GatewayMode.ALLOWLIST and not self.tasks:
            raise ConfigurationError("allowlist mode requires at least one task")
        if self.mode is GatewayMode.COMMAND and not os.path.isabs(self.shell):
            raise ConfigurationError(f"shell must be an absolute path, got {self.shell!r}")

        if not self.token:
            logger.warning("CMD_SERVICE_TOKEN is not set; every run request will be rejected")
        return self
