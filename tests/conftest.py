"""Pytest configuration and fixtures for cmdgate tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from cmdgate import CommandPolicy, GatewayConfig, GatewayMode, LocalRunner, create_app
from cmdgate.tasks import Task, build_tasks

TOKEN = "test-token"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(prefix="cmdgate_test_") as tmp:
        yield Path(tmp)


@pytest.fixture
def config() -> GatewayConfig:
    """Generalized-mode config with a short deadline."""
    return GatewayConfig(mode=GatewayMode.COMMAND, token=TOKEN, timeout=5.0)


@pytest_asyncio.fixture
async def runner(config: GatewayConfig, temp_dir: Path) -> AsyncGenerator[LocalRunner, None]:
    """Create a LocalRunner for testing."""
    (temp_dir / "test.txt").write_text("hello world")

    runner = LocalRunner(config, cwd=temp_dir)
    try:
        yield runner
    finally:
        await runner.close()


@pytest.fixture
def test_tasks() -> dict[str, Task]:
    """Task table using executables found on any POSIX host."""
    return dict(
        build_tasks(
            {
                "date": ["/bin/date"],
                "greet": ["/bin/sh", "-c", "echo hello; echo oops >&2; exit 3"],
                "missing": ["/nonexistent/bin/tool"],
            }
        )
    )


@pytest.fixture
def command_client() -> Generator[TestClient, None, None]:
    """HTTP client for a generalized-mode gateway."""
    app = create_app(GatewayConfig(mode=GatewayMode.COMMAND, token=TOKEN, timeout=5.0))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def task_client(test_tasks: dict[str, Task]) -> Generator[TestClient, None, None]:
    """HTTP client for an allow-list gateway."""
    app = create_app(
        GatewayConfig(mode=GatewayMode.ALLOWLIST, token=TOKEN, timeout=5.0, tasks=test_tasks)
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def standard_policy() -> CommandPolicy:
    """Create the standard deny-list policy."""
    return CommandPolicy.standard()
