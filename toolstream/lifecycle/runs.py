"""Run lifecycle operations.

Goal: keep start/cancel/shutdown semantics in one place so the bridge, the
scripts and tests don't drift.
"""

from __future__ import annotations

import asyncio
import logging

from toolstream.runners.config import OrchestratorConfig
from toolstream.runners.errors import ProcessNotFoundError
from toolstream.runners.executor import ActiveRun, StreamingExecutor
from toolstream.runners.models import EXEC, LOGIN, CompletionEvent, EventSink, RunRequest
from toolstream.runners.ports import Spawner
from toolstream.runners.registry import ProcessRegistry
from toolstream.runners.resolver import BinaryResolver

_log = logging.getLogger("toolstream.lifecycle")


class Orchestrator:
    """Starts runs in the background and routes their events to a sink."""

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        registry: ProcessRegistry | None = None,
        resolver: BinaryResolver | None = None,
        spawner: Spawner | None = None,
    ):
        self.config = config or OrchestratorConfig()
        self.registry = registry or ProcessRegistry(self.config.on_duplicate)
        self.executor = StreamingExecutor(
            self.registry, self.config, resolver=resolver, spawner=spawner
        )
        self._runs: dict[asyncio.Task, ActiveRun] = {}

    async def start(
        self, request: RunRequest, sink: EventSink | None = None
    ) -> "asyncio.Task[CompletionEvent]":
        """Spawn `request` and stream it from a background task.

        Spawn failures raise here, before any event is sent. Once this returns
        an exec run is registered, so `cancel` will find it.
        """
        active = await self.executor.spawn(request)
        task = asyncio.create_task(self._drive(active, sink), name=f"run:{request.run_id}")
        self._runs[task] = active
        task.add_done_callback(self._forget)
        return task

    async def run(self, request: RunRequest, sink: EventSink | None = None) -> CompletionEvent:
        task = await self.start(request, sink)
        return await task

    async def exec_stream(
        self,
        tool: str,
        prompt: str,
        run_id: str,
        *,
        cwd: str | None = None,
        model: str | None = None,
        config: dict[str, str] | None = None,
        sink: EventSink | None = None,
    ) -> "asyncio.Task[CompletionEvent]":
        request = RunRequest(
            tool=tool,
            run_id=run_id,
            prompt=prompt,
            cwd=cwd,
            model=model,
            config=dict(config or {}),
            mode=EXEC,
        )
        return await self.start(request, sink)

    async def login_stream(
        self, tool: str, run_id: str, *, sink: EventSink | None = None
    ) -> "asyncio.Task[CompletionEvent]":
        return await self.start(RunRequest(tool=tool, run_id=run_id, mode=LOGIN), sink)

    def cancel(self, run_id: str) -> None:
        """Kill the run registered under `run_id`.

        Raises ProcessNotFoundError if nothing is registered, which is normal
        when the run already finished.
        """
        try:
            self.registry.cancel(run_id)
        except ProcessNotFoundError:
            _log.info(f"Cancel: no active process for run {run_id}")
            raise
        _log.info(f"Cancel: killed run {run_id}")

    def active_runs(self) -> list[str]:
        return self.registry.run_ids()

    async def shutdown(self) -> None:
        """Kill every run still in flight and wait for their completions.

        This includes runs the registry does not know about (login runs, runs
        whose id was taken over by a newer one).
        """
        runs = list(self._runs.items())
        if not runs:
            return
        _log.info(f"Shutdown: killing {len(runs)} run(s)")
        for _, active in runs:
            active.kill()
        await asyncio.gather(*(task for task, _ in runs), return_exceptions=True)

    def _forget(self, task: asyncio.Task) -> None:
        self._runs.pop(task, None)

    async def _drive(self, active: ActiveRun, sink: EventSink | None) -> CompletionEvent:
        completion: CompletionEvent | None = None
        async for event in active.events():
            if isinstance(event, CompletionEvent):
                completion = event
            if sink is None:
                continue
            try:
                sink(event)
            except Exception:
                _log.exception(f"Event sink failed for run {active.run_id}")
        if completion is None:
            raise RuntimeError(f"Run {active.run_id} ended without a completion event")
        return completion
