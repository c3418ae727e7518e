"""Orchestrator configuration.

Configuration lives at the adapter boundary so executors and the bridge don't
grow a dependency on each other's constructor signatures. Every field can be
set from a `TOOLSTREAM_*` environment variable via `OrchestratorConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from toolstream.runners.errors import ConfigError


INPUT_MODES = ("auto", "argv", "stdin")
DUPLICATE_POLICIES = ("overwrite", "reject")


def _default_login_shell() -> str:
    return os.getenv("SHELL") or "/bin/sh"


def _env_flag(value: str | None) -> bool:
    return (value or "").lower() in {"1", "true", "yes"}


def _env_int(environ: Mapping[str, str], key: str) -> int | None:
    raw = environ.get(key, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def _env_float(environ: Mapping[str, str], key: str) -> float | None:
    raw = environ.get(key, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class OrchestratorConfig:
    app_name: str = "Toolstream"
    login_shell: str = field(default_factory=_default_login_shell)

    # Prompt delivery: "argv", "stdin", or "auto" (stdin on Windows).
    input_mode: str = "auto"
    # Bytes. Prompts over this go to stdin, as does any argv with a longer
    # argument. Linux caps a single argument at 128 KiB.
    stdin_threshold: int = 100_000

    # Optional wall-clock limit per run; None means no limit.
    timeout_s: float | None = None
    on_duplicate: str = "overwrite"
    cancellable_login: bool = False

    stream_limit: int = 10 * 1024 * 1024
    log_prompts: bool = False

    # Bridge bind address
    host: str = "127.0.0.1"
    port: int = 4317

    def __post_init__(self) -> None:
        if self.input_mode not in INPUT_MODES:
            raise ConfigError(f"input_mode must be one of {INPUT_MODES}, got {self.input_mode!r}")
        if self.on_duplicate not in DUPLICATE_POLICIES:
            raise ConfigError(
                f"on_duplicate must be one of {DUPLICATE_POLICIES}, got {self.on_duplicate!r}"
            )
        if self.stdin_threshold < 0:
            raise ConfigError("stdin_threshold must be >= 0")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ConfigError("timeout_s must be > 0")
        if self.stream_limit <= 0:
            raise ConfigError("stream_limit must be > 0")
        if not self.login_shell:
            raise ConfigError("login_shell must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "OrchestratorConfig":
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        if env.get("TOOLSTREAM_APP_NAME"):
            kwargs["app_name"] = env["TOOLSTREAM_APP_NAME"]
        if env.get("TOOLSTREAM_LOGIN_SHELL"):
            kwargs["login_shell"] = env["TOOLSTREAM_LOGIN_SHELL"]
        elif env.get("SHELL"):
            kwargs["login_shell"] = env["SHELL"]
        if env.get("TOOLSTREAM_INPUT_MODE"):
            kwargs["input_mode"] = env["TOOLSTREAM_INPUT_MODE"].strip().lower()
        if env.get("TOOLSTREAM_ON_DUPLICATE"):
            kwargs["on_duplicate"] = env["TOOLSTREAM_ON_DUPLICATE"].strip().lower()
        if env.get("TOOLSTREAM_HOST"):
            kwargs["host"] = env["TOOLSTREAM_HOST"]

        stdin_threshold = _env_int(env, "TOOLSTREAM_STDIN_THRESHOLD")
        if stdin_threshold is not None:
            kwargs["stdin_threshold"] = stdin_threshold
        kwargs["timeout_s"] = _env_float(env, "TOOLSTREAM_TIMEOUT_S")

        stream_limit = _env_int(env, "TOOLSTREAM_STREAM_LIMIT")
        if stream_limit is not None:
            kwargs["stream_limit"] = stream_limit
        port = _env_int(env, "TOOLSTREAM_PORT")
        if port is not None:
            kwargs["port"] = port

        kwargs["cancellable_login"] = _env_flag(env.get("TOOLSTREAM_CANCELLABLE_LOGIN"))
        kwargs["log_prompts"] = _env_flag(env.get("TOOLSTREAM_LOG_PROMPTS"))
        return cls(**kwargs)  # type: ignore[arg-type]
