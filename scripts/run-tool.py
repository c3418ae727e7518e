#!/usr/bin/env python3
"""Run one CLI tool through the orchestrator and print its output live.

Usage:
    run-tool.py [--model M] [-c key=value ...] [--cwd DIR] <tool> <prompt...>
    run-tool.py --login <tool>

Example:
    run-tool.py codex "Summarize the README"
    run-tool.py claude --model sonnet "List the TODOs in src/"

Ctrl+C cancels the run.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import secrets
import sys
from pathlib import Path

# Allow running this script directly from a checkout.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from toolstream.lifecycle import Orchestrator
from toolstream.runners import (
    CompletionEvent,
    OrchestratorConfig,
    ProcessNotFoundError,
    RunRequest,
    SpawnError,
    StreamEvent,
)
from toolstream.runners.models import EXEC, LOGIN


def _parse_overrides(values: list[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise SystemExit(f"Error: override must be key=value, got {item!r}")
        overrides[key] = value
    return overrides


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a CLI tool and stream its output")
    parser.add_argument("tool", help="tool name (codex or claude)")
    parser.add_argument("prompt", nargs="*", help="prompt for the tool")
    parser.add_argument("--login", action="store_true", help="run the login flow instead")
    parser.add_argument("--cwd", default=None, help="working directory for the tool")
    parser.add_argument("--model", default=None, help="model override")
    parser.add_argument(
        "-c",
        "--config",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="tool config override (repeatable)",
    )
    parser.add_argument("--run-id", default=None, help="run id (default: random)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def _print_event(event: StreamEvent | CompletionEvent) -> None:
    if isinstance(event, StreamEvent):
        sys.stdout.write(event.data)
        sys.stdout.flush()


async def main() -> int:
    args = _parse_args(sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if not args.login and not args.prompt:
        print("Error: a prompt is required unless --login is given", file=sys.stderr)
        return 2

    request = RunRequest(
        tool=args.tool,
        run_id=args.run_id or secrets.token_hex(6),
        prompt=" ".join(args.prompt),
        cwd=args.cwd,
        model=args.model,
        config=_parse_overrides(args.config),
        mode=LOGIN if args.login else EXEC,
    )

    orchestrator = Orchestrator(OrchestratorConfig.from_env())
    try:
        task = await orchestrator.start(request, _print_event)
    except (SpawnError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        completion = await task
    except asyncio.CancelledError:
        try:
            orchestrator.cancel(request.run_id)
        except ProcessNotFoundError:
            pass
        await orchestrator.shutdown()
        raise

    if not completion.ok:
        sys.stderr.write(completion.error or "")
        print(f"\n{request.tool} exited with code {completion.exit_code}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
