"""
Command runner backends.
"""

from cmdgate.runner._base import BaseRunner
from cmdgate.runner.local import LocalRunner

__all__ = [
    "BaseRunner",
    "LocalRunner",
]
