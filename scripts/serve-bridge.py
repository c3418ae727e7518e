#!/usr/bin/env python3
"""Serve the HTTP/SSE bridge.

Usage:
    serve-bridge.py [--host HOST] [--port PORT]

Defaults come from TOOLSTREAM_HOST / TOOLSTREAM_PORT (127.0.0.1:4317).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from aiohttp import web

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from toolstream.bridge import create_app
from toolstream.lifecycle import Orchestrator
from toolstream.runners import OrchestratorConfig


def main() -> None:
    config = OrchestratorConfig.from_env()

    parser = argparse.ArgumentParser(description="Serve the toolstream bridge")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    app = create_app(Orchestrator(config))
    web.run_app(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
