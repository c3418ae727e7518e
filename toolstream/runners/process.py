"""asyncio subprocess adapter satisfying the `ProcessHandle` port."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Sequence

log = logging.getLogger("toolstream.process")


class SubprocessHandle:
    """Wraps `asyncio.subprocess.Process` with an idempotent `kill`.

    When the child was started in its own session, `kill` signals the whole
    process group so tools launched through a login shell die with it.
    """

    def __init__(self, process: asyncio.subprocess.Process, *, group: bool = False):
        self.process = process
        self.group = group and os.name == "posix"

    @property
    def pid(self) -> int | None:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    @property
    def stdin(self) -> asyncio.StreamWriter | None:
        return self.process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader | None:
        return self.process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        return self.process.stderr

    def kill(self) -> None:
        # The group can outlive its leader (background children holding the
        # pipes), so it is signalled even after the leader has exited.
        if self.process.returncode is not None and not self.group:
            return
        try:
            if self.group:
                os.killpg(self.process.pid, signal.SIGKILL)
            else:
                self.process.kill()
        except ProcessLookupError:
            pass
        except PermissionError as e:
            log.warning(f"Could not kill pid {self.process.pid}: {e}")

    async def wait(self) -> int:
        return await self.process.wait()


async def spawn_process(
    argv: Sequence[str],
    *,
    cwd: str | None,
    stdin: int | None,
    stderr: int | None,
    new_session: bool,
    limit: int,
) -> SubprocessHandle:
    """Start `argv` with stdout piped. Raises OSError if it cannot start."""
    kwargs: dict[str, object] = {}
    if new_session and os.name == "posix":
        kwargs["start_new_session"] = True

    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=stdin,
        stdout=asyncio.subprocess.PIPE,
        stderr=stderr,
        cwd=cwd,
        limit=limit,
        **kwargs,
    )
    return SubprocessHandle(process, group=bool(kwargs))
