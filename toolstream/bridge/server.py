"""HTTP + SSE bridge between a UI and the orchestrator.

Routes:
    POST /runs                   start an exec run
    POST /login                  start a login run
    POST /runs/{run_id}/cancel   kill a run
    GET  /runs                   list registered run ids
    GET  /events                 SSE stream of `<tool>-stream` / `<tool>-complete`
"""

from __future__ import annotations

import asyncio
import logging

from aiohttp import web

from toolstream.bridge.events import EventBroadcaster, format_sse
from toolstream.lifecycle.runs import Orchestrator
from toolstream.runners.errors import (
    DuplicateRunError,
    ProcessNotFoundError,
    SpawnError,
    UnknownToolError,
)
from toolstream.runners.models import EXEC, LOGIN, RunRequest

log = logging.getLogger("toolstream.bridge")

ORCHESTRATOR_KEY = web.AppKey("orchestrator", Orchestrator)
BROADCASTER_KEY = web.AppKey("broadcaster", EventBroadcaster)

HEARTBEAT_S = 15.0


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_body(request: web.Request) -> dict:
    try:
        body = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(text="Request body must be JSON") from None
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(text="Request body must be a JSON object")
    return body


def _optional_str(body: dict, key: str) -> str | None:
    value = body.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise web.HTTPBadRequest(text=f"{key} must be a string")
    return value


def _run_request(body: dict, mode: str) -> RunRequest:
    tool = body.get("tool")
    run_id = body.get("runId")
    if not isinstance(tool, str) or not tool:
        raise web.HTTPBadRequest(text="tool is required")
    if not isinstance(run_id, str) or not run_id:
        raise web.HTTPBadRequest(text="runId is required")

    if mode == LOGIN:
        return RunRequest(tool=tool, run_id=run_id, mode=LOGIN)

    prompt = body.get("prompt")
    if not isinstance(prompt, str):
        raise web.HTTPBadRequest(text="prompt must be a string")
    config = body.get("config") or {}
    if not isinstance(config, dict):
        raise web.HTTPBadRequest(text="config must be an object")

    return RunRequest(
        tool=tool,
        run_id=run_id,
        prompt=prompt,
        cwd=_optional_str(body, "cwd"),
        model=_optional_str(body, "model"),
        config={str(k): str(v) for k, v in config.items()},
        mode=EXEC,
    )


async def _start(request: web.Request, mode: str) -> web.Response:
    orchestrator = request.app[ORCHESTRATOR_KEY]
    broadcaster = request.app[BROADCASTER_KEY]
    run_request = _run_request(await _read_body(request), mode)

    try:
        await orchestrator.start(run_request, broadcaster.publish)
    except UnknownToolError as e:
        return _error(400, str(e))
    except DuplicateRunError as e:
        return _error(409, str(e))
    except SpawnError as e:
        return _error(500, str(e))

    return web.json_response({"runId": run_request.run_id}, status=202)


async def start_run(request: web.Request) -> web.Response:
    return await _start(request, EXEC)


async def start_login(request: web.Request) -> web.Response:
    return await _start(request, LOGIN)


async def cancel_run(request: web.Request) -> web.Response:
    run_id = request.match_info["run_id"]
    try:
        request.app[ORCHESTRATOR_KEY].cancel(run_id)
    except ProcessNotFoundError as e:
        return _error(404, str(e))
    return web.json_response({"runId": run_id, "cancelled": True})


async def list_runs(request: web.Request) -> web.Response:
    return web.json_response({"active": request.app[ORCHESTRATOR_KEY].active_runs()})


async def stream_events(request: web.Request) -> web.StreamResponse:
    broadcaster = request.app[BROADCASTER_KEY]
    resp = web.StreamResponse(
        headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        }
    )
    # Subscribe first so nothing published after the headers go out is missed.
    queue = broadcaster.subscribe()
    try:
        await resp.prepare(request)
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=HEARTBEAT_S)
            except asyncio.TimeoutError:
                await resp.write(b": ping\n\n")
                continue
            if event is None:
                break
            await resp.write(format_sse(event.name, event.payload()))
    except ConnectionResetError:
        log.debug("SSE client disconnected")
    finally:
        broadcaster.unsubscribe(queue)
    return resp


async def _on_shutdown(app: web.Application) -> None:
    app[BROADCASTER_KEY].close()
    await app[ORCHESTRATOR_KEY].shutdown()


def create_app(
    orchestrator: Orchestrator | None = None,
    broadcaster: EventBroadcaster | None = None,
) -> web.Application:
    app = web.Application()
    app[ORCHESTRATOR_KEY] = orchestrator or Orchestrator()
    app[BROADCASTER_KEY] = broadcaster or EventBroadcaster()
    app.add_routes(
        [
            web.post("/runs", start_run),
            web.get("/runs", list_runs),
            web.post("/runs/{run_id}/cancel", cancel_run),
            web.post("/login", start_login),
            web.get("/events", stream_events),
        ]
    )
    app.on_shutdown.append(_on_shutdown)
    return app
