from __future__ import annotations

import os
import signal
import sys

import pytest

from toolstream.runners.process import SubprocessHandle

pytestmark = pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX process groups")


class _Process:
    def __init__(self, returncode: int | None) -> None:
        self.pid = 4321
        self.returncode = returncode
        self.kills = 0

    def kill(self) -> None:
        self.kills += 1


def test_group_is_killed_after_leader_exit(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[int, int]] = []
    monkeypatch.setattr(os, "killpg", lambda pid, sig: calls.append((pid, sig)))
    process = _Process(returncode=0)

    SubprocessHandle(process, group=True).kill()  # type: ignore[arg-type]

    assert calls == [(4321, signal.SIGKILL)]
    assert process.kills == 0


def test_empty_group_is_ignored(monkeypatch: pytest.MonkeyPatch) -> None:
    def killpg(pid: int, sig: int) -> None:
        raise ProcessLookupError(pid)

    monkeypatch.setattr(os, "killpg", killpg)
    SubprocessHandle(_Process(returncode=0), group=True).kill()  # type: ignore[arg-type]


def test_single_process_kill_skipped_once_exited() -> None:
    exited = _Process(returncode=1)
    SubprocessHandle(exited).kill()  # type: ignore[arg-type]
    assert exited.kills == 0

    running = _Process(returncode=None)
    SubprocessHandle(running).kill()  # type: ignore[arg-type]
    assert running.kills == 1
