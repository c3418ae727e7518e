"""Streaming executor for external CLI tools."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator

from toolstream.runners.command import build_login_command, plan_exec_command
from toolstream.runners.config import OrchestratorConfig
from toolstream.runners.errors import SpawnError
from toolstream.runners.models import EXEC, CompletionEvent, Event, RunRequest, StreamEvent
from toolstream.runners.pipeline import OutputBuffer, iter_queue_lines, pump_lines
from toolstream.runners.ports import ProcessHandle, Spawner
from toolstream.runners.process import spawn_process
from toolstream.runners.registry import ProcessRegistry
from toolstream.runners.resolver import BinaryResolver
from toolstream.runners.tools import ToolProfile, get_tool

log = logging.getLogger("toolstream.executor")


def _usable_dir(path: str | None) -> str | None:
    if not path:
        return None
    return path if Path(path).is_dir() else None


class ActiveRun:
    """A spawned run whose output has not been consumed yet."""

    def __init__(
        self,
        request: RunRequest,
        profile: ToolProfile,
        handle: ProcessHandle,
        registry: ProcessRegistry,
        *,
        registered: bool,
        stdin_data: bytes | None = None,
        timeout_s: float | None = None,
    ):
        self.request = request
        self.profile = profile
        self.handle = handle
        self.registry = registry
        self.registered = registered
        self.stdin_data = stdin_data
        self.timeout_s = timeout_s
        self.timed_out = False

    @property
    def run_id(self) -> str:
        return self.request.run_id

    def kill(self) -> None:
        self.handle.kill()

    async def _feed_stdin(self) -> None:
        stdin = self.handle.stdin
        if stdin is None:
            return
        try:
            if self.stdin_data:
                stdin.write(self.stdin_data)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            log.debug(f"Run {self.run_id}: stdin closed early: {e}")
        finally:
            stdin.close()

    async def _enforce_timeout(self, timeout_s: float) -> None:
        # Cancelled once output is drained, so firing means the run is still open
        # even if the tool itself has exited.
        await asyncio.sleep(timeout_s)
        self.timed_out = True
        log.warning(f"Run {self.run_id} exceeded {timeout_s}s; killing")
        self.handle.kill()

    async def _wait(self) -> int | None:
        try:
            return await self.handle.wait()
        except Exception:
            log.exception(f"Run {self.run_id}: wait failed")
            return None

    async def events(self) -> AsyncIterator[Event]:
        """Yield stdout `StreamEvent`s, then exactly one `CompletionEvent`.

        stderr is buffered but never streamed; it only shows up in the
        failure payload. The registry entry is gone before the completion
        event is yielded.
        """
        request = self.request
        queue: asyncio.Queue = asyncio.Queue()
        readers: list[asyncio.Task] = []
        helpers: list[asyncio.Task] = []
        buffer = OutputBuffer()
        exit_code: int | None = None
        finished = False

        if self.handle.stdout is not None:
            readers.append(asyncio.create_task(pump_lines(self.handle.stdout, "stdout", queue)))
        if request.mode == EXEC and self.handle.stderr is not None:
            readers.append(asyncio.create_task(pump_lines(self.handle.stderr, "stderr", queue)))
        wait_task = asyncio.create_task(self._wait())
        if self.stdin_data is not None:
            helpers.append(asyncio.create_task(self._feed_stdin()))
        if self.timeout_s is not None:
            helpers.append(asyncio.create_task(self._enforce_timeout(self.timeout_s)))

        try:
            async for channel, line in iter_queue_lines(queue, len(readers)):
                buffer.add(channel, line)
                if channel == "stdout":
                    yield StreamEvent(run_id=request.run_id, tool=self.profile.name, data=f"{line}\n")
            await asyncio.gather(*readers)
            exit_code = await wait_task
            finished = True
        finally:
            pending = list(helpers)
            if not finished:
                # Consumer went away mid-stream.
                self.handle.kill()
                pending += [*readers, wait_task]
            if self.registered:
                self.registry.remove(request.run_id, self.handle)
            for task in pending:
                task.cancel()
            for result in await asyncio.gather(*pending, return_exceptions=True):
                if isinstance(result, Exception):
                    log.warning(f"Run {self.run_id}: helper task failed: {result!r}")

        ok = exit_code == 0 and not self.timed_out
        log.info(f"{self.profile.name} run {request.run_id} finished: exit={exit_code} ok={ok}")
        yield CompletionEvent(
            run_id=request.run_id,
            tool=self.profile.name,
            ok=ok,
            text=buffer.stdout_text() if ok else buffer.combined_text(),
            exit_code=exit_code,
        )


class StreamingExecutor:
    """Spawns tool processes and streams their output.

    `spawn` does everything that can fail before output starts (tool lookup,
    binary resolution, process start, registration) so those failures reach
    the caller directly. `ActiveRun.events` then never raises for the child's
    own failures; they arrive as an `ok=False` completion.
    """

    def __init__(
        self,
        registry: ProcessRegistry,
        config: OrchestratorConfig | None = None,
        *,
        resolver: BinaryResolver | None = None,
        spawner: Spawner | None = None,
    ):
        self.registry = registry
        self.config = config or OrchestratorConfig()
        self.resolver = resolver or BinaryResolver(
            self.config.app_name, login_shell=self.config.login_shell
        )
        self.spawner: Spawner = spawner or spawn_process

    def _log_request(self, request: RunRequest) -> None:
        if self.config.log_prompts and request.prompt:
            log.info(f"{request.tool} {request.mode} {request.run_id}: {request.prompt[:50]}...")
        else:
            log.info(f"{request.tool} {request.mode} {request.run_id}")

    async def spawn(self, request: RunRequest) -> ActiveRun:
        profile = get_tool(request.tool)
        self._log_request(request)

        binary = await asyncio.to_thread(self.resolver.resolve, profile.name)
        if binary is None:
            log.info(f"{profile.name} not resolved; falling back to {self.config.login_shell} -lc")

        stdin_data: bytes | None = None
        if request.mode == EXEC:
            argv, strategy = plan_exec_command(profile, binary, request, self.config)
            stdin_data = strategy.stdin_data(request.prompt)
            stdin = asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL
            stderr = asyncio.subprocess.PIPE
            cwd = _usable_dir(request.cwd)
            register = True
        else:
            argv = build_login_command(profile, binary, self.config.login_shell)
            # Inherit stdin so credential prompts reach the real terminal.
            stdin = None
            stderr = asyncio.subprocess.DEVNULL
            cwd = None
            register = self.config.cancellable_login

        try:
            handle = await self.spawner(
                argv,
                cwd=cwd,
                stdin=stdin,
                stderr=stderr,
                new_session=request.mode == EXEC,
                limit=self.config.stream_limit,
            )
        except OSError as e:
            log.error(f"Failed to start {profile.name} for run {request.run_id}: {e}")
            raise SpawnError(profile.name, str(e)) from e

        if register:
            try:
                self.registry.register(request.run_id, handle)
            except Exception:
                handle.kill()
                await handle.wait()
                raise

        return ActiveRun(
            request,
            profile,
            handle,
            self.registry,
            registered=register,
            stdin_data=stdin_data,
            timeout_s=self.config.timeout_s,
        )

    async def execute(self, request: RunRequest) -> AsyncIterator[Event]:
        """Spawn `request` and yield its events."""
        active = await self.spawn(request)
        async for event in active.events():
            yield event
