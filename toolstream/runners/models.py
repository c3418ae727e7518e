"""Shared run data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable


EXEC = "exec"
LOGIN = "login"
MODES = (EXEC, LOGIN)


@dataclass
class RunRequest:
    """A single invocation of an external tool."""

    tool: str
    run_id: str
    prompt: str = ""
    cwd: str | None = None
    model: str | None = None
    config: dict[str, str] = field(default_factory=dict)
    mode: str = EXEC

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"Unknown run mode: {self.mode}")
        if not self.run_id:
            raise ValueError("run_id is required")


@dataclass(frozen=True)
class StreamEvent:
    """One cleaned stdout line of a run (newline included)."""

    run_id: str
    tool: str
    data: str
    channel: str = "stdout"

    @property
    def name(self) -> str:
        return f"{self.tool}-stream"

    def payload(self) -> dict[str, object]:
        return {"runId": self.run_id, "channel": self.channel, "data": self.data}


@dataclass(frozen=True)
class CompletionEvent:
    """Terminal outcome of a run.

    `text` is the stdout output on success and the combined stdout+stderr
    buffer on failure.
    """

    run_id: str
    tool: str
    ok: bool
    text: str
    exit_code: int | None = None

    @property
    def name(self) -> str:
        return f"{self.tool}-complete"

    @property
    def output(self) -> str | None:
        return self.text if self.ok else None

    @property
    def error(self) -> str | None:
        return None if self.ok else self.text

    def payload(self) -> dict[str, object]:
        key = "output" if self.ok else "error"
        return {"runId": self.run_id, "ok": self.ok, key: self.text}


Event = StreamEvent | CompletionEvent

# Receives every event of a run, in order. Must not block.
EventSink = Callable[[Event], None]
