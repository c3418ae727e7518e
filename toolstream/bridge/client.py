"""HTTP client for the toolstream bridge."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Callable

import aiohttp

log = logging.getLogger("toolstream.bridge")

BridgeEvent = tuple[str, dict]


class BridgeClient:
    """HTTP + SSE transport for a running bridge."""

    def __init__(self, server_url: str | None = None):
        self.server_url = (server_url or self._resolve_server_url()).rstrip("/")

    def _resolve_server_url(self) -> str:
        base_url = os.getenv("TOOLSTREAM_BRIDGE_URL")
        if base_url:
            return base_url

        host = os.getenv("TOOLSTREAM_HOST", "127.0.0.1")
        port = os.getenv("TOOLSTREAM_PORT", "4317")
        return f"http://{host}:{port}"

    def _make_url(self, path: str) -> str:
        return f"{self.server_url}{path}"

    async def request_json(
        self, session: aiohttp.ClientSession, method: str, url: str, **kwargs
    ) -> object | None:
        async with session.request(method, url, **kwargs) as resp:
            text = await resp.text()
            if resp.status >= 400:
                detail = text.strip() or resp.reason
                try:
                    parsed = json.loads(text)
                except json.JSONDecodeError:
                    parsed = None
                if isinstance(parsed, dict) and parsed.get("error"):
                    detail = parsed["error"]
                raise RuntimeError(f"Bridge HTTP {resp.status}: {detail}")
            if not text:
                return None
            try:
                return json.loads(text)
            except json.JSONDecodeError:
                return text

    async def start_run(
        self,
        session: aiohttp.ClientSession,
        tool: str,
        prompt: str,
        run_id: str,
        *,
        cwd: str | None = None,
        model: str | None = None,
        config: dict[str, str] | None = None,
    ) -> None:
        body: dict[str, object] = {"tool": tool, "prompt": prompt, "runId": run_id}
        if cwd:
            body["cwd"] = cwd
        if model:
            body["model"] = model
        if config:
            body["config"] = config
        await self.request_json(session, "POST", self._make_url("/runs"), json=body)

    async def start_login(self, session: aiohttp.ClientSession, tool: str, run_id: str) -> None:
        body = {"tool": tool, "runId": run_id}
        await self.request_json(session, "POST", self._make_url("/login"), json=body)

    async def cancel_run(self, session: aiohttp.ClientSession, run_id: str) -> bool:
        """Cancel `run_id`. False if the bridge has no such run."""
        url = self._make_url(f"/runs/{run_id}/cancel")
        async with session.post(url) as resp:
            if resp.status == 404:
                log.info(f"Run {run_id} not active")
                return False
            if resp.status >= 400:
                raise RuntimeError(f"Bridge HTTP {resp.status}: {await resp.text()}")
            return True

    async def list_runs(self, session: aiohttp.ClientSession) -> list[str]:
        response = await self.request_json(session, "GET", self._make_url("/runs"))
        if isinstance(response, dict) and isinstance(response.get("active"), list):
            return [str(r) for r in response["active"]]
        return []

    async def stream_events(
        self,
        session: aiohttp.ClientSession,
        queue: asyncio.Queue[BridgeEvent],
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        headers = {"Accept": "text/event-stream"}
        timeout = aiohttp.ClientTimeout(total=None, sock_read=None)
        async with session.get(self._make_url("/events"), headers=headers, timeout=timeout) as resp:
            if resp.status >= 400:
                raise RuntimeError(f"Bridge SSE HTTP {resp.status}")
            await self.read_sse_stream(resp, queue, should_stop=should_stop)

    async def read_sse_stream(
        self,
        resp: aiohttp.ClientResponse,
        queue: asyncio.Queue[BridgeEvent],
        should_stop: Callable[[], bool] | None = None,
    ) -> None:
        event_name = "message"
        data_lines: list[str] = []
        async for raw in resp.content:
            if should_stop and should_stop():
                break
            line = raw.decode("utf-8", errors="replace").strip("\r\n")
            if not line:
                if not data_lines:
                    continue
                payload = "\n".join(data_lines)
                name, event_name, data_lines = event_name, "message", []
                try:
                    event = json.loads(payload)
                except json.JSONDecodeError:
                    continue
                if isinstance(event, dict):
                    await queue.put((name, event))
                continue
            if line.startswith(":"):
                continue
            if line.startswith("event:"):
                event_name = line[len("event:") :].strip()
            elif line.startswith("data:"):
                data_lines.append(line[len("data:") :].lstrip())
