"""Command line entry point: serve the gateway with uvicorn."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

import uvicorn

from cmdgate._types import GatewayMode
from cmdgate.config import GatewayConfig, parse_mode
from cmdgate.errors import ConfigurationError
from cmdgate.server import create_app
from cmdgate.tasks import available_tasks

logger = logging.getLogger("cmdgate")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmdgate",
        description="HTTP gateway that runs host commands for authorized callers.",
    )
    parser.add_argument("--mode", choices=["allowlist", "command"], help="operating mode")
    parser.add_argument("--host", help="bind address")
    parser.add_argument("--port", type=int, help="bind port")
    parser.add_argument("--timeout", type=float, help="per-command deadline in seconds")
    parser.add_argument("--log-level", help="logging level (DEBUG, INFO, ...)")
    return parser


def load_config(argv: list[str] | None = None) -> GatewayConfig:
    """Environment first, then command-line overrides."""
    args = build_parser().parse_args(argv)
    config = GatewayConfig.from_env()

    overrides = {}
    if args.mode:
        overrides["mode"] = parse_mode(args.mode)
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()

    return dataclasses.replace(config, **overrides)


def main(argv: list[str] | None = None) -> int:
    try:
        config = load_config(argv)
        logging.basicConfig(
            level=config.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        app = create_app(config)
    except ConfigurationError as e:
        print(f"cmdgate: {e}", file=sys.stderr)
        return 2

    if config.mode is GatewayMode.ALLOWLIST:
        missing = set(config.tasks) - available_tasks(config.tasks)
        if missing:
            logger.warning(f"Tasks with no executable on this host: {', '.join(sorted(missing))}")

    logger.info(f"Listening on {config.host}:{config.port}")
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
