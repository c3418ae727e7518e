"""Supported tools.

This provides a single place to map a tool name to how it is invoked. Callers
go through `get_tool` rather than indexing `TOOLS` so an unknown name fails the
same way everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass

from toolstream.runners.errors import UnknownToolError


@dataclass(frozen=True)
class ToolProfile:
    name: str
    exec_args: tuple[str, ...]
    login_args: tuple[str, ...] = ("login",)
    # Argument that tells the tool to read its prompt from stdin, if it needs one.
    stdin_marker: str | None = None


TOOLS: dict[str, ToolProfile] = {
    "codex": ToolProfile(
        name="codex",
        exec_args=("exec", "--skip-git-repo-check"),
        stdin_marker="-",
    ),
    "claude": ToolProfile(
        name="claude",
        exec_args=("-p",),
    ),
}


def get_tool(name: str, tools: dict[str, ToolProfile] | None = None) -> ToolProfile:
    name = (name or "").strip().lower()
    profile = (TOOLS if tools is None else tools).get(name)
    if profile is None:
        raise UnknownToolError(name)
    return profile
