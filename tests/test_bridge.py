from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import aiohttp
import pytest
from aiohttp.test_utils import TestServer

from toolstream.bridge import BridgeClient, EventBroadcaster, create_app, format_sse
from toolstream.lifecycle import Orchestrator
from toolstream.runners.config import OrchestratorConfig
from toolstream.runners.models import StreamEvent
from tests.fakes import FailingSpawner, FakeProcess, FakeSpawner, StaticResolver


@asynccontextmanager
async def _bridge(spawner):
    orchestrator = Orchestrator(
        OrchestratorConfig(input_mode="argv"),
        resolver=StaticResolver(),  # type: ignore[arg-type]
        spawner=spawner,
    )
    broadcaster = EventBroadcaster()
    server = TestServer(create_app(orchestrator, broadcaster))
    await server.start_server()
    try:
        async with aiohttp.ClientSession() as session:
            client = BridgeClient(f"http://{server.host}:{server.port}")
            yield client, session, orchestrator, broadcaster
    finally:
        await server.close()


async def _wait_for(predicate, timeout: float = 5.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


def test_format_sse() -> None:
    assert format_sse("codex-stream", {"runId": "r1", "data": "héllo\n"}) == (
        'event: codex-stream\ndata: {"runId": "r1", "data": "héllo\\n"}\n\n'.encode()
    )


def test_broadcaster_drops_slow_subscriber() -> None:
    async def _run() -> None:
        broadcaster = EventBroadcaster(max_backlog=2)
        fast = broadcaster.subscribe()
        slow = broadcaster.subscribe()
        event = StreamEvent(run_id="r1", tool="codex", data="x\n")

        broadcaster.publish(event)
        fast.get_nowait()
        broadcaster.publish(event)
        fast.get_nowait()
        broadcaster.publish(event)

        assert broadcaster.subscriber_count == 1
        assert slow.get_nowait() is event
        assert slow.get_nowait() is None

    asyncio.run(_run())


def test_run_events_stream_over_sse() -> None:
    async def _run() -> None:
        spawner = FakeSpawner(
            lambda: FakeProcess(stdout=b"\x1b[1mplan\x1b[0m\ndone\n", returncode=0)
        )
        async with _bridge(spawner) as (client, session, _, broadcaster):
            queue: asyncio.Queue = asyncio.Queue()
            reader = asyncio.create_task(client.stream_events(session, queue))
            await _wait_for(lambda: broadcaster.subscriber_count == 1)

            await client.start_run(session, "codex", "make a plan", "run-7", model="o3")

            received = []
            while True:
                name, payload = await asyncio.wait_for(queue.get(), 5)
                received.append((name, payload))
                if name == "codex-complete":
                    break
            reader.cancel()

        assert received == [
            ("codex-stream", {"runId": "run-7", "channel": "stdout", "data": "plan\n"}),
            ("codex-stream", {"runId": "run-7", "channel": "stdout", "data": "done\n"}),
            ("codex-complete", {"runId": "run-7", "ok": True, "output": "plan\ndone\n"}),
        ]
        argv, _ = spawner.calls[0]
        assert argv[-3:] == ["--model", "o3", "make a plan"]

    asyncio.run(_run())


def test_cancel_and_list_runs() -> None:
    async def _run() -> None:
        spawner = FakeSpawner(lambda: FakeProcess(stdout=b"working\n", hold=True))
        async with _bridge(spawner) as (client, session, orchestrator, _):
            await client.start_run(session, "claude", "long task", "r1")
            assert await client.list_runs(session) == ["r1"]

            assert await client.cancel_run(session, "r1") is True
            assert spawner.spawned[0].kill_count == 1
            await _wait_for(lambda: orchestrator.active_runs() == [])

            assert await client.cancel_run(session, "r1") is False
            assert await client.list_runs(session) == []

    asyncio.run(_run())


def test_cancel_unknown_run_returns_404_with_message() -> None:
    async def _run() -> None:
        async with _bridge(FakeSpawner()) as (client, session, _, _b):
            async with session.post(f"{client.server_url}/runs/ghost/cancel") as resp:
                assert resp.status == 404
                assert await resp.json() == {"error": "Process not found for run_id: ghost"}

    asyncio.run(_run())


def test_login_route_starts_login_run() -> None:
    async def _run() -> None:
        spawner = FakeSpawner(lambda: FakeProcess(stdout=b"logged in\n"))
        async with _bridge(spawner) as (client, session, _, _b):
            await client.start_login(session, "claude", "login-1")
            argv, kwargs = spawner.calls[0]
            assert argv == ["/fake/bin/tool", "login"]
            assert kwargs["stdin"] is None

    asyncio.run(_run())


@pytest.mark.parametrize(
    ("body", "status"),
    [
        ({"tool": "vim", "prompt": "x", "runId": "r1"}, 400),
        ({"prompt": "x", "runId": "r1"}, 400),
        ({"tool": "codex", "prompt": "x"}, 400),
        ({"tool": "codex", "prompt": 5, "runId": "r1"}, 400),
        ({"tool": "codex", "prompt": "x", "runId": "r1", "config": ["a"]}, 400),
    ],
)
def test_start_run_rejects_bad_requests(body: dict, status: int) -> None:
    async def _run() -> None:
        spawner = FakeSpawner()
        async with _bridge(spawner) as (client, session, _, _b):
            async with session.post(f"{client.server_url}/runs", json=body) as resp:
                assert resp.status == status
        assert spawner.calls == []

    asyncio.run(_run())


def test_start_run_reports_spawn_failure() -> None:
    async def _run() -> None:
        spawner = FailingSpawner(PermissionError(13, "Permission denied"))
        async with _bridge(spawner) as (client, session, _, _b):
            with pytest.raises(RuntimeError, match="Bridge HTTP 500: Failed to start codex"):
                await client.start_run(session, "codex", "x", "r1")

    asyncio.run(_run())


def test_duplicate_run_rejected_with_409() -> None:
    async def _run() -> None:
        spawner = FakeSpawner(
            lambda: FakeProcess(hold=True, pid=1),
            lambda: FakeProcess(hold=True, pid=2),
        )
        orchestrator = Orchestrator(
            OrchestratorConfig(input_mode="argv", on_duplicate="reject"),
            resolver=StaticResolver(),  # type: ignore[arg-type]
            spawner=spawner,
        )
        server = TestServer(create_app(orchestrator))
        await server.start_server()
        try:
            async with aiohttp.ClientSession() as session:
                client = BridgeClient(f"http://{server.host}:{server.port}")
                await client.start_run(session, "codex", "a", "dup")
                with pytest.raises(RuntimeError, match="409"):
                    await client.start_run(session, "codex", "b", "dup")
        finally:
            await server.close()

        assert all(p.returncode is not None for p in spawner.spawned)

    asyncio.run(_run())


def test_completion_event_payload_on_failure_over_sse() -> None:
    async def _run() -> None:
        spawner = FakeSpawner(
            lambda: FakeProcess(stdout=b"partial\n", stderr=b"error: bad flag\n", returncode=1)
        )
        async with _bridge(spawner) as (client, session, _, broadcaster):
            queue: asyncio.Queue = asyncio.Queue()
            reader = asyncio.create_task(client.stream_events(session, queue))
            await _wait_for(lambda: broadcaster.subscriber_count == 1)

            await client.start_run(session, "claude", "x", "r9")
            name, payload = await asyncio.wait_for(queue.get(), 5)
            while name != "claude-complete":
                name, payload = await asyncio.wait_for(queue.get(), 5)
            reader.cancel()

        assert payload["ok"] is False
        assert "output" not in payload
        assert "partial" in payload["error"]
        assert "error: bad flag" in payload["error"]

    asyncio.run(_run())
