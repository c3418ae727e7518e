"""Command-line construction and prompt delivery.

Two ways to hand the prompt to a tool:

- `ArgvPrompt`: the prompt is the trailing argument. Simple, but bounded by
  the platform's command-line length limit (about 32K chars on Windows).
- `StdinPrompt`: the prompt is written to the child's stdin, which is then
  closed.

`select_input_strategy` picks one from configuration: an explicit mode wins,
"auto" means stdin on Windows and argv elsewhere, and `stdin_threshold` (bytes)
moves long prompts to stdin regardless of platform. `plan_exec_command` also
moves the prompt to stdin when any single argument would still exceed the
threshold, which matters for the login-shell fallback where the quoted command
is one argument.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from toolstream.runners.config import OrchestratorConfig
from toolstream.runners.models import RunRequest
from toolstream.runners.sanitize import shell_quote
from toolstream.runners.tools import ToolProfile


@dataclass(frozen=True)
class ArgvPrompt:
    name: str = "argv"

    def argv_tail(self, profile: ToolProfile, prompt: str) -> list[str]:
        return [prompt]

    def stdin_data(self, prompt: str) -> bytes | None:
        return None


@dataclass(frozen=True)
class StdinPrompt:
    name: str = "stdin"

    def argv_tail(self, profile: ToolProfile, prompt: str) -> list[str]:
        return [profile.stdin_marker] if profile.stdin_marker else []

    def stdin_data(self, prompt: str) -> bytes | None:
        return prompt.encode("utf-8")


InputStrategy = ArgvPrompt | StdinPrompt


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def select_input_strategy(
    config: OrchestratorConfig, prompt: str, platform: str | None = None
) -> InputStrategy:
    platform = platform or sys.platform

    if config.input_mode == "stdin":
        return StdinPrompt()
    if _byte_len(prompt) > config.stdin_threshold:
        return StdinPrompt()
    if config.input_mode == "argv":
        return ArgvPrompt()
    return StdinPrompt() if platform.startswith("win") else ArgvPrompt()


def override_flags(request: RunRequest) -> list[str]:
    """Model and `-c key=value` flags, in mapping order."""
    flags: list[str] = []
    if request.model:
        flags.extend(["--model", request.model])
    for key, value in (request.config or {}).items():
        flags.extend(["-c", f"{key}={value}"])
    return flags


def _via_login_shell(login_shell: str, words: list[str]) -> list[str]:
    return [login_shell, "-lc", " ".join(shell_quote(w) for w in words)]


def build_exec_command(
    profile: ToolProfile,
    binary: Path | None,
    request: RunRequest,
    strategy: InputStrategy,
    login_shell: str,
) -> list[str]:
    """Build the argv for an exec run.

    Without a resolved binary the tool is run by bare name through
    `<login_shell> -lc`, so the user's profile PATH applies.
    """
    args = [
        *profile.exec_args,
        *override_flags(request),
        *strategy.argv_tail(profile, request.prompt),
    ]
    if binary is not None:
        return [str(binary), *args]
    return _via_login_shell(login_shell, [profile.name, *args])


def build_login_command(profile: ToolProfile, binary: Path | None, login_shell: str) -> list[str]:
    if binary is not None:
        return [str(binary), *profile.login_args]
    return _via_login_shell(login_shell, [profile.name, *profile.login_args])


def plan_exec_command(
    profile: ToolProfile,
    binary: Path | None,
    request: RunRequest,
    config: OrchestratorConfig,
    platform: str | None = None,
) -> tuple[list[str], InputStrategy]:
    """Pick the prompt strategy for `request` and build its argv."""
    strategy = select_input_strategy(config, request.prompt, platform)
    argv = build_exec_command(profile, binary, request, strategy, config.login_shell)
    if isinstance(strategy, ArgvPrompt) and max(map(_byte_len, argv)) > config.stdin_threshold:
        strategy = StdinPrompt()
        argv = build_exec_command(profile, binary, request, strategy, config.login_shell)
    return argv, strategy
