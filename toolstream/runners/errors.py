"""Runner error types."""

from __future__ import annotations


class ToolstreamError(Exception):
    """Base class for orchestrator errors."""


class ConfigError(ToolstreamError):
    """Invalid orchestrator configuration."""


class UnknownToolError(ToolstreamError, ValueError):
    def __init__(self, tool: str):
        super().__init__(f"Unknown tool: {tool}")
        self.tool = tool


class SpawnError(ToolstreamError):
    """The child process could not be started."""

    def __init__(self, tool: str, reason: str):
        super().__init__(f"Failed to start {tool}: {reason}")
        self.tool = tool
        self.reason = reason


class ProcessNotFoundError(ToolstreamError, LookupError):
    """No live process is registered under the run id.

    Expected when a cancel races a run that already finished.
    """

    def __init__(self, run_id: str):
        super().__init__(f"Process not found for run_id: {run_id}")
        self.run_id = run_id


class DuplicateRunError(ToolstreamError):
    def __init__(self, run_id: str):
        super().__init__(f"Run already active for run_id: {run_id}")
        self.run_id = run_id
