"""Process registry.

Maps a caller-supplied run id to the live process handle so a run can be
cancelled from outside the task that owns it. One registry is shared by every
run of an orchestrator; it is passed in explicitly rather than kept as a
module global so tests can use their own.

Thread-safe. Every operation holds the lock only for a dict operation; `cancel`
sends the kill and returns without waiting for the process to exit.
"""

from __future__ import annotations

import logging
import threading

from toolstream.runners.config import DUPLICATE_POLICIES
from toolstream.runners.errors import ConfigError, DuplicateRunError, ProcessNotFoundError
from toolstream.runners.ports import ProcessHandle

log = logging.getLogger("toolstream.registry")


class ProcessRegistry:
    def __init__(self, on_duplicate: str = "overwrite"):
        if on_duplicate not in DUPLICATE_POLICIES:
            raise ConfigError(f"Unknown duplicate policy: {on_duplicate}")
        self.on_duplicate = on_duplicate
        self._procs: dict[str, ProcessHandle] = {}
        self._lock = threading.Lock()

    def register(self, run_id: str, handle: ProcessHandle) -> None:
        """Track `handle` under `run_id`.

        With the default "overwrite" policy a second registration replaces the
        first, and the earlier process can no longer be cancelled by id.
        """
        with self._lock:
            previous = self._procs.get(run_id)
            if previous is not None and previous is not handle:
                if self.on_duplicate == "reject":
                    raise DuplicateRunError(run_id)
                log.warning(f"Run {run_id} re-registered; previous process is no longer cancellable")
            self._procs[run_id] = handle

    def lookup(self, run_id: str) -> ProcessHandle | None:
        with self._lock:
            return self._procs.get(run_id)

    def cancel(self, run_id: str) -> None:
        """Kill the process registered under `run_id`.

        The entry stays in place; the executor removes it once the process has
        exited and its output is drained.
        """
        with self._lock:
            handle = self._procs.get(run_id)
            if handle is None:
                raise ProcessNotFoundError(run_id)
            handle.kill()

    def remove(self, run_id: str, handle: ProcessHandle | None = None) -> None:
        """Drop `run_id`. With `handle`, only if it is still the registered one."""
        with self._lock:
            if handle is not None and self._procs.get(run_id) is not handle:
                return
            self._procs.pop(run_id, None)

    def run_ids(self) -> list[str]:
        with self._lock:
            return list(self._procs)

    def active_count(self) -> int:
        with self._lock:
            return len(self._procs)

    def __len__(self) -> int:
        return self.active_count()

    def __contains__(self, run_id: object) -> bool:
        with self._lock:
            return run_id in self._procs
