"""
HTTP surface of the gateway.

The app exposes one of two route sets depending on the configured mode:
named tasks behind ``X-Token`` or raw shell commands behind a bearer
token. Every error leaves the handler as a ``{"error": ...}`` body.
"""

from __future__ import annotations

import hmac
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cmdgate._types import GatewayMode
from cmdgate.config import GatewayConfig
from cmdgate.errors import (
    CmdGateError,
    InfrastructureError,
    PermissionDenied,
    Unauthorized,
    ValidationError,
)
from cmdgate.runner import BaseRunner, LocalRunner
from cmdgate.tasks import task_names

logger = logging.getLogger(__name__)

BEARER_UNAUTHORIZED = "unauthorized: expected Authorization header (Bearer <token>)"
MISSING_COMMAND = "missing command: send command in request body"

_STATUS_CODES: tuple[tuple[type[CmdGateError], int], ...] = (
    (Unauthorized, 401),
    (PermissionDenied, 403),
    (ValidationError, 400),
    (InfrastructureError, 400),
)


class HealthResponse(BaseModel):
    ok: bool = True


class TaskListResponse(BaseModel):
    tasks: list[str]


class UsageResponse(BaseModel):
    mode: str = "direct_command"
    usage: str = "POST /run with raw command body"
    auth: str = "Authorization: Bearer <token>"


class TaskRunResponse(BaseModel):
    task: str
    exit_code: int
    timed_out: bool
    output: str


class CommandRunResponse(BaseModel):
    command: str
    exit_code: int
    timed_out: bool
    output: str


def status_for(exc: CmdGateError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def parse_authorization(value: str | None) -> str:
    """Extract the token from an ``Authorization`` header value.

    The ``Bearer`` scheme is matched case-insensitively; a bare token is
    accepted as-is.
    """
    auth = (value or "").strip()
    if auth.lower().startswith("bearer "):
        return auth[len("bearer ") :].strip()
    return auth


def token_matches(expected: str | None, presented: str | None) -> bool:
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f"}


def unquote_lenient(literal: str) -> str:
    """
    Strip the quotes from a string literal and resolve its escapes.

    Unlike ``json.loads`` this never fails: an unknown escape such as
    ``\\q`` yields the escaped character, and a trailing lone backslash
    is dropped.
    """
    inner = literal[1:-1]
    out = []
    chars = iter(inner)
    for char in chars:
        if char != "\\":
            out.append(char)
            continue
        escaped = next(chars, None)
        if escaped is None:
            break
        out.append(_ESCAPES.get(escaped, escaped))
    return "".join(out)


def decode_command_body(body: bytes) -> str:
    """
    Turn a request body into command text.

    The body is normally the raw command. A JSON string literal such as
    ``"echo \\"hi\\""`` is decoded first; a literal ``json.loads`` rejects
    is unquoted leniently instead.

    Raises:
        ValidationError: If the body is not valid UTF-8.
    """
    try:
        text = body.decode("utf-8").strip()
    except UnicodeDecodeError:
        raise ValidationError("command is not valid UTF-8") from None
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            decoded = unquote_lenient(text)
        return decoded.strip()
    return text


def create_app(config: GatewayConfig | None = None, *, runner: BaseRunner | None = None) -> FastAPI:
    """
    Build the gateway application.

    Args:
        config: Validated gateway configuration. Defaults to ``GatewayConfig()``.
        runner: Runner to execute commands with. Defaults to a LocalRunner
            for the config; the app closes it on shutdown.

    Returns:
        A FastAPI app with the routes for ``config.mode``.
    """
    config = (config or GatewayConfig()).validate()
    runner = runner or LocalRunner(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"cmdgate serving in {config.mode.value} mode")
        yield
        await runner.close()

    app = FastAPI(title="cmdgate", version="0.1.0", lifespan=lifespan)
    app.state.config = config
    app.state.runner = runner

    @app.exception_handler(CmdGateError)
    async def handle_gateway_error(request: Request, exc: CmdGateError) -> JSONResponse:
        status_code = status_for(exc)
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc}")
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse()

    if config.mode is GatewayMode.ALLOWLIST:
        _add_task_routes(app, config, runner)
    else:
        _add_command_routes(app, config, runner)

    return app


def _add_task_routes(app: FastAPI, config: GatewayConfig, runner: BaseRunner) -> None:
    async def require_token(x_token: str | None = Header(default=None)) -> None:
        if not token_matches(config.token, x_token):
            raise Unauthorized("unauthorized")

    @app.get("/tasks", response_model=TaskListResponse)
    async def list_tasks() -> TaskListResponse:
        return TaskListResponse(tasks=task_names(config.tasks))

    @app.post("/run/{task}", response_model=TaskRunResponse, dependencies=[Depends(require_token)])
    async def run_task(task: str) -> TaskRunResponse:
        result = await runner.run_task(task)
        result.raise_for_infrastructure()
        return TaskRunResponse(
            task=task,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            output=result.text,
        )


def _add_command_routes(app: FastAPI, config: GatewayConfig, runner: BaseRunner) -> None:
    async def require_bearer(authorization: str | None = Header(default=None)) -> None:
        if not token_matches(config.token, parse_authorization(authorization)):
            raise Unauthorized(BEARER_UNAUTHORIZED)

    @app.get("/tasks", response_model=UsageResponse)
    async def usage() -> UsageResponse:
        return UsageResponse()

    @app.post("/run", response_model=CommandRunResponse, dependencies=[Depends(require_bearer)])
    async def run_command(request: Request) -> CommandRunResponse:
        command = decode_command_body(await request.body())
        if not command:
            raise ValidationError(MISSING_COMMAND)

        result = await runner.run(command)
        result.raise_for_infrastructure()
        return CommandRunResponse(
            command=command,
            exit_code=result.exit_code,
            timed_out=result.timed_out,
            output=result.text,
        )


def app_from_env() -> FastAPI:
    """App factory for ``uvicorn --factory cmdgate.server:app_from_env``."""
    return create_app(GatewayConfig.from_env())
