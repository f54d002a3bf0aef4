"""
Walk a batch of requested commands through the cmdgate engine.

Shows what a caller of the gateway sees for each outcome: a clean run,
a non-zero exit, a timeout, and a command stopped by the deny-list.
No HTTP server is started; the runner is used directly.
"""

import asyncio
from dataclasses import dataclass

from cmdgate import GatewayConfig, PermissionDenied, Runner, ValidationError


@dataclass
class Request:
    note: str
    command: str


REQUESTS = [
    Request("Innocent exploration", "ls -la"),
    Request("Reports a failure", "grep -q needle /etc/hostname"),
    Request("Runs too long", "sleep 10"),
    # Dangerous, blocked before anything is spawned
    Request("Wipes the root filesystem", "rm -rf /"),
    Request("Same thing, shouting", "RM -FR /*"),
    Request("Reboots the host", "echo bye && REBOOT"),
    Request("Nothing to run", "   "),
]


async def main():
    config = GatewayConfig(timeout=2.0)

    async with Runner(config) as runner:
        for request in REQUESTS:
            print(f"{request.note}: {request.command!r}")
            try:
                result = await runner.run(request.command)
            except PermissionDenied as e:
                print(f"  -> 403 {e}")
            except ValidationError as e:
                print(f"  -> 400 {e}")
            else:
                first_line = result.text.strip().splitlines()[:1]
                print(
                    f"  -> 200 exit_code={result.exit_code} timed_out={result.timed_out} "
                    f"output={first_line}"
                )
            print("-" * 50)


if __name__ == "__main__":
    asyncio.run(main())
