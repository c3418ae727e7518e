"""Locate the executable for a tool.

Desktop apps are usually started without the user's shell profile, so the
PATH they inherit misses package-manager and version-manager directories.
The resolver therefore checks, in order, and returns the first existing path:

1. `<TOOL>_BIN` environment override
2. the app's vendor bin directory
3. common install prefixes
4. PATH lookup in the current environment
5. `command -v` inside a login shell

`None` means unresolved; callers fall back to running the bare tool name
through the login shell.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Iterator, Mapping, Sequence

from toolstream.runners.sanitize import shell_quote

log = logging.getLogger("toolstream.resolver")


COMMON_DIRS = ("/opt/homebrew/bin", "/usr/local/bin", "/usr/bin")


class BinaryResolver:
    def __init__(
        self,
        app_name: str = "Toolstream",
        *,
        environ: Mapping[str, str] | None = None,
        platform: str | None = None,
        common_dirs: Sequence[str] = COMMON_DIRS,
        login_shell: str | None = None,
        lookup_timeout_s: float = 10.0,
    ):
        self.app_name = app_name
        self.environ = os.environ if environ is None else environ
        self.platform = platform or sys.platform
        self.common_dirs = tuple(common_dirs)
        self.login_shell = login_shell
        self.lookup_timeout_s = lookup_timeout_s

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    def resolve(self, name: str) -> Path | None:
        for source, candidate in self._candidates(name):
            if candidate is not None and candidate.exists():
                log.debug(f"Resolved {name} via {source}: {candidate}")
                return candidate
        log.debug(f"Could not resolve {name}")
        return None

    def _candidates(self, name: str) -> Iterator[tuple[str, Path | None]]:
        # Generator so the subprocess lookups only run when needed.
        yield "env", self._env_override(name)
        yield "vendor", self.vendor_path(name)
        for path in self._common_paths(name):
            yield "common", path
        yield "which", self._which(name)
        if self.login_shell and not self.is_windows:
            yield "login-shell", self._login_shell_lookup(self.login_shell, name)

    def _env_override(self, name: str) -> Path | None:
        value = self.environ.get(f"{name.upper()}_BIN")
        return Path(value) if value else None

    def vendor_dir(self) -> Path | None:
        """Directory where the app keeps binaries it manages itself."""
        if self.is_windows:
            local = self.environ.get("LOCALAPPDATA")
            return Path(local) / self.app_name / "bin" if local else None

        home = self.environ.get("HOME")
        if self.platform == "darwin":
            if not home:
                return None
            return Path(home) / "Library" / "Application Support" / self.app_name / "bin"

        base = self.environ.get("XDG_CONFIG_HOME")
        if base:
            return Path(base) / self.app_name / "bin"
        if home:
            return Path(home) / ".config" / self.app_name / "bin"
        return None

    def vendor_path(self, name: str) -> Path | None:
        directory = self.vendor_dir()
        if directory is None:
            return None
        return directory / (f"{name}.exe" if self.is_windows else name)

    def _common_paths(self, name: str) -> list[Path]:
        if self.is_windows:
            return []
        return [Path(d) / name for d in self.common_dirs]

    def _which(self, name: str) -> Path | None:
        found = shutil.which(name, path=self.environ.get("PATH", ""))
        return Path(found) if found else None

    def _login_shell_lookup(self, shell: str, name: str) -> Path | None:
        try:
            proc = subprocess.run(
                [shell, "-lc", f"command -v {shell_quote(name)}"],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.lookup_timeout_s,
                env=dict(self.environ),
            )
        except (OSError, subprocess.SubprocessError) as e:
            log.debug(f"Login shell lookup for {name} failed: {e}")
            return None

        # Profile scripts may print banners; the path is the last line.
        lines = [line.strip() for line in proc.stdout.splitlines() if line.strip()]
        if not lines:
            return None
        # Aliases and builtins come back as non-paths.
        path = Path(lines[-1])
        return path if path.is_absolute() else None
