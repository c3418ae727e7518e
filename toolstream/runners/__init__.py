"""Process runners for external CLI tools."""

from toolstream.runners.config import OrchestratorConfig
from toolstream.runners.errors import (
    ConfigError,
    DuplicateRunError,
    ProcessNotFoundError,
    SpawnError,
    ToolstreamError,
    UnknownToolError,
)
from toolstream.runners.executor import ActiveRun, StreamingExecutor
from toolstream.runners.models import CompletionEvent, Event, RunRequest, StreamEvent
from toolstream.runners.ports import ProcessHandle
from toolstream.runners.registry import ProcessRegistry
from toolstream.runners.resolver import BinaryResolver
from toolstream.runners.sanitize import shell_quote, strip_ansi

__all__ = [
    "ActiveRun",
    "BinaryResolver",
    "CompletionEvent",
    "ConfigError",
    "DuplicateRunError",
    "Event",
    "OrchestratorConfig",
    "ProcessHandle",
    "ProcessNotFoundError",
    "ProcessRegistry",
    "RunRequest",
    "SpawnError",
    "StreamEvent",
    "StreamingExecutor",
    "ToolstreamError",
    "UnknownToolError",
    "shell_quote",
    "strip_ansi",
]
