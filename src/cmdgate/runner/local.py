"""
Local subprocess runner.

Uses asyncio's subprocess transport so a request task waits on the
child's exit with a deadline instead of polling it on a timer. The
protocol reports two separate events: the child was reaped, and its
output pipe reached end-of-file. They can be far apart when background
jobs inherit the pipe, so the deadline only ever looks at the first.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import signal
import time
from pathlib import Path
from typing import Sequence

from cmdgate._types import ABNORMAL_EXIT, TIMEOUT_EXIT, ExecutionResult
from cmdgate.config import GatewayConfig
from cmdgate.errors import PermissionDenied, ValidationError
from cmdgate.runner._base import BaseRunner
from cmdgate.security.policy import CommandPolicy
from cmdgate.tasks import resolve_task

logger = logging.getLogger(__name__)

# Upper bound on reading after the child is gone.
DRAIN_GRACE = 1.0

# Reading stops once the pipe has been quiet this long.
DRAIN_SETTLE = 0.05

_DESCRIPTOR_ERRORS = {errno.EMFILE, errno.ENFILE}


class _CaptureProtocol(asyncio.SubprocessProtocol):
    """Collects combined output and signals exit and end-of-output."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self.chunks: list[bytes] = []
        self.exited: asyncio.Future[None] = loop.create_future()
        self.output_closed: asyncio.Future[None] = loop.create_future()

    def pipe_data_received(self, fd: int, data: bytes | str) -> None:
        self.chunks.append(data)  # type: ignore[arg-type]

    def pipe_connection_lost(self, fd: int, exc: Exception | None) -> None:
        if not self.output_closed.done():
            self.output_closed.set_result(None)

    def process_exited(self) -> None:
        if not self.exited.done():
            self.exited.set_result(None)

    @property
    def output(self) -> bytes:
        return b"".join(self.chunks)


def _kill_group(transport: asyncio.SubprocessTransport) -> None:
    """SIGKILL the child's whole process group."""
    try:
        os.killpg(transport.get_pid(), signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        # Group is gone and the id now belongs to someone else.
        if transport.get_returncode() is None:
            transport.kill()


def _spawn_error(exc: OSError) -> str:
    if exc.errno in _DESCRIPTOR_ERRORS:
        return f"pipe failed: {exc.strerror or exc}"
    return f"spawn failed: {exc.strerror or exc}"


class LocalRunner(BaseRunner):
    """
    Subprocess-based runner for the host the gateway runs on.

    Execution features:
    - Deny-list policy check before any shell command is spawned
    - stdout and stderr captured together through a single pipe
    - Deadline enforcement with SIGKILL to the whole process group
    - Output in flight at exit is drained; background jobs are left alone

    There is no resource isolation: commands run with the gateway's own
    user, filesystem and network access.

    Example:
        >>> async with LocalRunner(GatewayConfig(timeout=5)) as runner:
        ...     result = await runner.run("uname -a")
        >>> print(result.text)
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        policy: CommandPolicy | None = None,
        cwd: Path | str | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        """
        Initialize a local runner.

        Args:
            config: Gateway configuration. Defaults to ``GatewayConfig()``.
            policy: Deny-list policy. Defaults to the config's policy.
            cwd: Working directory for commands. Defaults to the gateway's.
            env: Environment for commands. Defaults to the gateway's.
        """
        self._config = config or GatewayConfig()
        self._policy = policy or self._config.policy
        self._cwd = Path(cwd).resolve() if cwd else None
        self._env = env
        self._active: set[asyncio.SubprocessTransport] = set()
        self._closed = False

    @property
    def config(self) -> GatewayConfig:
        return self._config

    def validate(self, command: str) -> str:
        """
        Trim a command and check its length.

        Raises:
            ValidationError: If the command is empty or too long, or if it
                cannot be passed to the shell as an argument.
        """
        trimmed = command.strip()
        if not trimmed:
            raise ValidationError("empty command")
        limit = self._config.max_command_length
        if len(trimmed) > limit:
            raise ValidationError(f"command too long (max {limit} chars)")
        # argv entries are C strings in the host encoding
        if "\x00" in trimmed:
            raise ValidationError("command contains a NUL byte")
        try:
            os.fsencode(trimmed)
        except UnicodeEncodeError:
            raise ValidationError("command is not encodable for the host") from None
        return trimmed

    async def run(self, command: str, *, timeout: float | None = None) -> ExecutionResult:
        if self._closed:
            raise RuntimeError("Runner has been closed")

        command = self.validate(command)

        try:
            self._policy.check(command)
        except PermissionDenied as exc:
            logger.warning(f"Blocked command ({exc.reason}): {command!r}")
            raise

        return await self._execute([self._config.shell, "-lc", command], timeout)

    async def run_task(self, name: str, *, timeout: float | None = None) -> ExecutionResult:
        if self._closed:
            raise RuntimeError("Runner has been closed")

        task = resolve_task(name, self._config.tasks)
        return await self._execute(task.argv, timeout)

    async def _execute(self, argv: Sequence[str], timeout: float | None) -> ExecutionResult:
        timeout_val = timeout if timeout is not None else self._config.timeout
        started = time.monotonic()
        loop = asyncio.get_running_loop()

        try:
            transport, protocol = await loop.subprocess_exec(
                lambda: _CaptureProtocol(loop),
                *argv,
                cwd=self._cwd,
                env=self._env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as exc:
            message = _spawn_error(exc)
            logger.error(f"Could not start {argv[0]}: {message}")
            return ExecutionResult.failed(message)

        self._active.add(transport)
        try:
            timed_out = await self._supervise(transport, protocol, timeout_val)
            returncode = transport.get_returncode()
        except asyncio.CancelledError:
            _kill_group(transport)
            raise
        finally:
            self._active.discard(transport)
            transport.close()

        if timed_out:
            exit_code = TIMEOUT_EXIT
        elif returncode is None or returncode < 0:
            # Negative return codes mean the child died from a signal
            exit_code = ABNORMAL_EXIT
        else:
            exit_code = returncode

        output = protocol.output
        logger.info(
            f"{argv[0]} pid={transport.get_pid()} exit_code={exit_code} timed_out={timed_out} "
            f"bytes={len(output)} elapsed={time.monotonic() - started:.2f}s"
        )
        return ExecutionResult(
            success=True,
            exit_code=exit_code,
            timed_out=timed_out,
            output=output,
        )

    async def _supervise(
        self,
        transport: asyncio.SubprocessTransport,
        protocol: _CaptureProtocol,
        timeout: float,
    ) -> bool:
        """
        Wait for the child under the deadline, then drain its output.

        Returns:
            True if the child had to be killed at the deadline.
        """
        timed_out = False
        try:
            await asyncio.wait_for(asyncio.shield(protocol.exited), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"pid={transport.get_pid()} exceeded {timeout}s deadline, killing")
            _kill_group(transport)
            await protocol.exited  # Ensure process is reaped

        if not await self._drain(protocol):
            # Background jobs keep running; they lose the read end when the
            # transport is closed.
            logger.info(f"pid={transport.get_pid()} left processes holding its output")

        return timed_out

    async def _drain(self, protocol: _CaptureProtocol) -> bool:
        """
        Collect output that is already in flight after the child exited.

        Reading stops at end-of-output or once the pipe goes quiet, and
        never lasts longer than ``DRAIN_GRACE`` seconds.

        Returns:
            True if the output pipe reached end-of-file.
        """
        deadline = time.monotonic() + DRAIN_GRACE
        while True:
            seen = len(protocol.chunks)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return protocol.output_closed.done()
            try:
                await asyncio.wait_for(
                    asyncio.shield(protocol.output_closed),
                    timeout=min(DRAIN_SETTLE, remaining),
                )
                return True
            except asyncio.TimeoutError:
                if len(protocol.chunks) == seen:
                    return False

    async def close(self) -> None:
        """
        Stop accepting work and kill commands that are still running.

        Safe to call multiple times.
        """
        if self._closed:
            return

        self._closed = True
        for transport in list(self._active):
            _kill_group(transport)
