"""
Deny-list command classifier.

This is the safety layer in front of the generalized command mode. It is
a best-effort textual filter, not a sandbox: variable expansion, command
substitution and encoded payloads are not inspected.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from cmdgate._types import Verdict
from cmdgate.errors import PermissionDenied

# Start of the command or right after a shell separator.
_BOUNDARY = r"(^|[;&|])\s*"

# Block device names: SCSI/SATA, virtio and NVMe (optionally partitioned).
_BLOCK_DEVICE = r"/dev/(sd[a-z]\d*|vd[a-z]\d*|nvme\d+n\d+(p\d+)?)\b"

# `rm` target that is the root directory or a root-level glob, then a
# separator or end of string.
_ROOT_TARGET = r"\s+(/\s*($|[;&|])|/\*\s*($|[;&|]))"


@dataclass(frozen=True, slots=True)
class DenyRule:
    """A compiled pattern and the reason reported when it matches."""

    pattern: re.Pattern[str]
    reason: str

    @classmethod
    def compile(cls, pattern: str, reason: str) -> DenyRule:
        return cls(re.compile(pattern), reason)

    def matches(self, command: str) -> bool:
        return self.pattern.search(command) is not None


# Checked before everything else as a plain substring test.
DANGEROUS_RM_FLAG = "--no-preserve-root"

# Recursive+force in either flag order.
ROOT_DELETE_RULES: tuple[DenyRule, ...] = (
    DenyRule.compile(r"\brm\b[^;&|]*-[^;&|]*r[^;&|]*f[^;&|]*" + _ROOT_TARGET, "root filesystem deletion"),
    DenyRule.compile(r"\brm\b[^;&|]*-[^;&|]*f[^;&|]*r[^;&|]*" + _ROOT_TARGET, "root filesystem deletion"),
)

# Table order is significant: first match wins.
DENY_RULES: tuple[DenyRule, ...] = (
    DenyRule.compile(_BOUNDARY + r"(shutdown|reboot|halt|poweroff)\b", "power control command"),
    DenyRule.compile(_BOUNDARY + r"init\s+[06]\b", "runlevel switch command"),
    DenyRule.compile(
        _BOUNDARY + r"systemctl\s+(reboot|poweroff|halt)\b", "system power control command"
    ),
    DenyRule.compile(
        _BOUNDARY + r"(mkfs(\.[a-z0-9_+-]+)?|fdisk|sfdisk|parted|wipefs)\b",
        "disk formatting/partition command",
    ),
    DenyRule.compile(_BOUNDARY + r"dd\b", "raw disk copy command"),
    DenyRule.compile(r"\b(of|if)=" + _BLOCK_DEVICE, "block-device access argument"),
    DenyRule.compile(_BOUNDARY + r":\s*>\s*" + _BLOCK_DEVICE, "block-device overwrite"),
    DenyRule.compile(_BOUNDARY + r"kill\s+-9\s+-?1\b", "kill-all command"),
)


@dataclass(frozen=True)
class CommandPolicy:
    """
    Immutable deny-list policy.

    The policy is built once at startup and shared by every request, so
    it never changes after construction. To extend it, build a new one
    with ``CommandPolicy.standard().extended(...)``.
    """

    rules: tuple[DenyRule, ...] = DENY_RULES

    @classmethod
    def standard(cls) -> CommandPolicy:
        """Create the standard policy with the built-in deny rules."""
        return cls()

    def extended(self, *rules: tuple[str, str]) -> CommandPolicy:
        """
        Return a copy of this policy with extra rules appended.

        Args:
            rules: ``(regex, reason)`` pairs, matched against the
                lower-cased command after the built-in rules.
        """
        extra = tuple(DenyRule.compile(pattern, reason) for pattern, reason in rules)
        return CommandPolicy(rules=self.rules + extra)

    def classify(self, command: str) -> Verdict:
        """
        Decide whether a command may run.

        Matching is done on the lower-cased text so that case variation
        cannot slip past a rule.

        Args:
            command: The trimmed command string.

        Returns:
            Verdict.allow(), or Verdict.block(reason) for the first rule
            that matches.
        """
        lower = command.lower()

        if DANGEROUS_RM_FLAG in lower:
            return Verdict.block("dangerous rm flag")

        for rule in ROOT_DELETE_RULES:
            if rule.matches(lower):
                return Verdict.block(rule.reason)

        for rule in self.rules:
            if rule.matches(lower):
                return Verdict.block(rule.reason)

        return Verdict.allow()

    def check(self, command: str) -> str:
        """
        Validate a command against the policy.

        Returns:
            The command, unchanged.

        Raises:
            PermissionDenied: If the command is blocked.
        """
        verdict = self.classify(command)
        if verdict.blocked:
            raise PermissionDenied(verdict.reason or "blocked", command)
        return command


_STANDARD = CommandPolicy.standard()


def classify(command: str) -> Verdict:
    """Classify a command with the standard policy."""
    return _STANDARD.classify(command)
