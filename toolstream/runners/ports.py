"""Ports (interfaces) for process handling.

The registry and executors depend on these contracts rather than on
`asyncio.subprocess.Process`, so tests can drive a run with a fake process.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class ProcessHandle(Protocol):
    """A running child process."""

    pid: int | None
    returncode: int | None
    stdin: asyncio.StreamWriter | None
    stdout: asyncio.StreamReader | None
    stderr: asyncio.StreamReader | None

    def kill(self) -> None:
        """Force the process to exit. Killing an exited process is a no-op."""
        ...

    async def wait(self) -> int:
        ...


class Spawner(Protocol):
    async def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: str | None,
        stdin: int | None,
        stderr: int | None,
        new_session: bool,
        limit: int,
    ) -> ProcessHandle:
        ...
