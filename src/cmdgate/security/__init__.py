"""Command classification for cmdgate."""

from cmdgate.security.policy import (
    DENY_RULES,
    ROOT_DELETE_RULES,
    CommandPolicy,
    DenyRule,
    classify,
)

__all__ = ["DENY_RULES", "ROOT_DELETE_RULES", "CommandPolicy", "DenyRule", "classify"]
