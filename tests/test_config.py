from __future__ import annotations

import pytest

from toolstream.runners.config import OrchestratorConfig
from toolstream.runners.errors import ConfigError
from toolstream.runners.models import CompletionEvent, RunRequest, StreamEvent


def test_from_env_defaults() -> None:
    config = OrchestratorConfig.from_env({})
    assert config.app_name == "Toolstream"
    assert config.input_mode == "auto"
    assert config.timeout_s is None
    assert config.stdin_threshold == 100_000
    assert config.on_duplicate == "overwrite"
    assert config.cancellable_login is False
    assert config.log_prompts is False
    assert config.port == 4317


def test_from_env_reads_overrides() -> None:
    config = OrchestratorConfig.from_env(
        {
            "TOOLSTREAM_APP_NAME": "Editor",
            "TOOLSTREAM_LOGIN_SHELL": "/bin/zsh",
            "SHELL": "/bin/bash",
            "TOOLSTREAM_INPUT_MODE": "STDIN",
            "TOOLSTREAM_STDIN_THRESHOLD": "4096",
            "TOOLSTREAM_TIMEOUT_S": "90",
            "TOOLSTREAM_ON_DUPLICATE": "reject",
            "TOOLSTREAM_CANCELLABLE_LOGIN": "yes",
            "TOOLSTREAM_LOG_PROMPTS": "1",
            "TOOLSTREAM_PORT": "9000",
        }
    )
    assert config.app_name == "Editor"
    assert config.login_shell == "/bin/zsh"
    assert config.input_mode == "stdin"
    assert config.stdin_threshold == 4096
    assert config.timeout_s == 90.0
    assert config.on_duplicate == "reject"
    assert config.cancellable_login is True
    assert config.log_prompts is True
    assert config.port == 9000


def test_from_env_falls_back_to_shell() -> None:
    assert OrchestratorConfig.from_env({"SHELL": "/usr/bin/fish"}).login_shell == "/usr/bin/fish"


@pytest.mark.parametrize(
    "env",
    [
        {"TOOLSTREAM_TIMEOUT_S": "soon"},
        {"TOOLSTREAM_TIMEOUT_S": "0"},
        {"TOOLSTREAM_STDIN_THRESHOLD": "big"},
        {"TOOLSTREAM_INPUT_MODE": "pty"},
        {"TOOLSTREAM_ON_DUPLICATE": "ignore"},
    ],
)
def test_from_env_rejects_bad_values(env: dict[str, str]) -> None:
    with pytest.raises(ConfigError):
        OrchestratorConfig.from_env(env)


def test_run_request_validation() -> None:
    with pytest.raises(ValueError):
        RunRequest(tool="codex", run_id="r1", mode="interactive")
    with pytest.raises(ValueError):
        RunRequest(tool="codex", run_id="")


def test_event_payloads_match_ui_contract() -> None:
    stream = StreamEvent(run_id="r1", tool="codex", data="hello\n")
    assert stream.name == "codex-stream"
    assert stream.payload() == {"runId": "r1", "channel": "stdout", "data": "hello\n"}

    done = CompletionEvent(run_id="r1", tool="claude", ok=True, text="all\n", exit_code=0)
    assert done.name == "claude-complete"
    assert done.payload() == {"runId": "r1", "ok": True, "output": "all\n"}
    assert done.error is None

    failed = CompletionEvent(run_id="r1", tool="claude", ok=False, text="boom\n", exit_code=1)
    assert failed.payload() == {"runId": "r1", "ok": False, "error": "boom\n"}
    assert failed.output is None
