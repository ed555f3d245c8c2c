"""Operator entry point.

    mergegate serve                 run the status gateway
    mergegate evaluate <number>     gate one named change and exit, serving
                                    its live status while it runs

Exit codes for evaluate: 0 merged, 3 rejected by validation, 1 error.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys
from collections.abc import Iterator, Sequence

import structlog
import uvicorn

from mergegate.config.settings import Settings, get_settings
from mergegate.gate.coordinator import GateCoordinator
from mergegate.gate.retry import CancellationToken
from mergegate.gate.state import EvaluationOutcome
from mergegate.gateway.app import build_clients, build_coordinator, create_app
from mergegate.infra.errors import MergeGateError
from mergegate.infra.logging import setup_logging

logger = structlog.get_logger()

EXIT_MERGED = 0
EXIT_ERROR = 1
EXIT_REJECTED = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mergegate", description="CI-driven merge gate")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the status gateway")
    serve_parser.add_argument("--host", default=None, help="Defaults to GATEWAY_HOST")
    serve_parser.add_argument("--port", type=int, default=None, help="Defaults to GATEWAY_PORT")

    evaluate_parser = subparsers.add_parser(
        "evaluate", help="Wait for stable builds, validate and merge one change",
    )
    evaluate_parser.add_argument("number", type=int, help="Pull request number")
    evaluate_parser.add_argument("--host", default=None, help="Defaults to GATEWAY_HOST")
    evaluate_parser.add_argument("--port", type=int, default=None, help="Defaults to GATEWAY_PORT")
    evaluate_parser.add_argument(
        "--no-status", action="store_true", help="Do not serve /api/gate during the evaluation",
    )
    return parser


class StatusServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the running evaluation."""

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


async def start_status_server(
    coordinator: GateCoordinator, *, host: str, port: int,
) -> tuple[StatusServer, asyncio.Task[None]]:
    """Serve the status app for ``coordinator`` on the running loop.

    Returns once the listener is bound. Raises RuntimeError when it cannot
    start, e.g. because the port is taken.
    """
    server = StatusServer(
        uvicorn.Config(create_app(coordinator), host=host, port=port, log_config=None),
    )

    async def serve() -> None:
        # uvicorn exits the process on bind failures
        with contextlib.suppress(SystemExit):
            await server.serve()

    task = asyncio.create_task(serve())
    while not server.started:
        if task.done():
            raise RuntimeError(f"Status server failed to start on {host}:{port}")
        await asyncio.sleep(0.05)
    logger.info("status_server_listening", host=host, port=port)
    return server, task


async def stop_status_server(server: StatusServer, task: asyncio.Task[None]) -> None:
    server.should_exit = True
    await task


async def evaluate_once(
    settings: Settings,
    number: int,
    *,
    host: str | None = None,
    port: int | None = None,
    serve_status: bool = True,
) -> EvaluationOutcome:
    jenkins, github = build_clients(settings)
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    status: tuple[StatusServer, asyncio.Task[None]] | None = None
    try:
        coordinator = build_coordinator(settings, jenkins=jenkins, github=github)
        await coordinator.set_whitelist(settings.gate.whitelist_users)
        if serve_status:
            status = await start_status_server(
                coordinator,
                host=host or settings.gateway.host,
                port=port if port is not None else settings.gateway.port,
            )
        candidate = await github.get_candidate(number)

        cancel = CancellationToken()
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signum, cancel.cancel, signum.name)
                installed.append(signum)

        return await coordinator.evaluate(candidate, cancel=cancel)
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)
        if status is not None:
            await stop_status_server(*status)
        await jenkins.aclose()
        await github.aclose()


def run_cli(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    resolved = settings or get_settings()
    setup_logging(json_output=resolved.log.json_output, log_level=resolved.log.level)

    if args.command == "serve":
        uvicorn.run(
            "mergegate.gateway.app:app",
            host=args.host or resolved.gateway.host,
            port=args.port or resolved.gateway.port,
        )
        return 0

    try:
        outcome = asyncio.run(
            evaluate_once(
                resolved,
                args.number,
                host=args.host,
                port=args.port,
                serve_status=not args.no_status,
            )
        )
    except (MergeGateError, RuntimeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    logger.info("evaluate_finished", number=args.number, outcome=outcome.value)
    print(f"#{args.number}: {outcome.value}")
    return EXIT_MERGED if outcome is EvaluationOutcome.merged else EXIT_REJECTED


def main() -> int:
    return run_cli()


if __name__ == "__main__":
    sys.exit(main())
