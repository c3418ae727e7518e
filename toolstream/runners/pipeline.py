"""Shared run pipeline helpers.

One run fans its pipes in to a single consumer:
- a reader task per pipe, cleaning each line and putting it on an
  asyncio.Queue tagged with its channel
- the consumer (`iter_queue_lines`) that yields lines in arrival order until
  every reader has signalled end-of-stream

Only the consumer touches the run's `OutputBuffer`, so the buffer needs no lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

from toolstream.runners.sanitize import strip_ansi

log = logging.getLogger("toolstream.pipeline")


ChannelLine = tuple[str, str | None]


@dataclass
class OutputBuffer:
    """Cleaned output of one run."""

    stdout: list[str] = field(default_factory=list)
    combined: list[str] = field(default_factory=list)

    def add(self, channel: str, line: str) -> None:
        if channel == "stdout":
            self.stdout.append(line)
        self.combined.append(line)

    @staticmethod
    def _join(lines: list[str]) -> str:
        return "".join(f"{line}\n" for line in lines)

    def stdout_text(self) -> str:
        return self._join(self.stdout)

    def combined_text(self) -> str:
        return self._join(self.combined)


def clean_line(raw: bytes) -> str:
    line = raw.decode("utf-8", errors="replace")
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return strip_ansi(line)


async def _discard_rest(reader: asyncio.StreamReader) -> None:
    # Keep the pipe drained so the child never blocks on a full buffer.
    try:
        while await reader.read(65536):
            pass
    except (OSError, ValueError):
        pass


async def _read_piece(reader: asyncio.StreamReader) -> tuple[bytes, bool]:
    """Next line, or the leading part of a line longer than the reader's limit."""
    try:
        return await reader.readuntil(b"\n"), True
    except asyncio.LimitOverrunError as e:
        return await reader.readexactly(e.consumed), False


async def pump_lines(
    reader: asyncio.StreamReader,
    channel: str,
    queue: asyncio.Queue[ChannelLine],
) -> None:
    """Read `reader` line by line onto `queue`, then put `(channel, None)`.

    Lines longer than the reader's limit are collected in pieces and still
    delivered whole. A trailing line without a newline is delivered at EOF.
    On a read error the remaining output is discarded; lines already queued
    stand.
    """
    pending = bytearray()
    try:
        while True:
            try:
                piece, complete = await _read_piece(reader)
            except asyncio.IncompleteReadError as e:
                # EOF
                pending += e.partial
                if pending:
                    queue.put_nowait((channel, clean_line(bytes(pending))))
                break
            except OSError as e:
                log.warning(f"{channel} reader stopped: {e}")
                await _discard_rest(reader)
                break
            pending += piece
            if complete:
                queue.put_nowait((channel, clean_line(bytes(pending))))
                pending.clear()
    finally:
        queue.put_nowait((channel, None))


async def iter_queue_lines(
    queue: asyncio.Queue[ChannelLine], readers: int
) -> AsyncIterator[tuple[str, str]]:
    """Yield `(channel, line)` until `readers` end-of-stream markers arrive."""
    open_readers = readers
    while open_readers:
        channel, line = await queue.get()
        if line is None:
            open_readers -= 1
            continue
        yield channel, line
