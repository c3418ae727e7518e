"""Text cleanup helpers shared by the executors.

CLI tools write colour codes, cursor movement and window-title escapes even
when their output is piped. The UI wants plain text, so every line goes through
`strip_ansi` before it is buffered or emitted.

`shell_quote` is only needed on the login-shell fallback path, where the whole
command has to be handed to `<shell> -lc` as one string.
"""

from __future__ import annotations

import re


_ESCAPE_RE = re.compile(
    r"""
    \x1b\][^\x07\x1b]*(?:\x07|\x1b\\|$)     # OSC ... BEL | ST
    | \x1b\[[0-?]*[\x20-/]*[@-~]            # CSI params intermediates final
    | \x1b[PX^_][^\x1b]*(?:\x1b\\|$)        # DCS / SOS / PM / APC strings
    | \x1b[\x20-/]*[0-~]                    # two-byte and nF escapes
    """,
    re.VERBOSE,
)

# C0 and C1 controls, minus \t \n \r. Also catches a lone trailing ESC.
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f\x80-\x9f]")


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences and non-printable control characters."""
    if not text:
        return text
    return _CONTROL_RE.sub("", _ESCAPE_RE.sub("", text))


def shell_quote(text: str) -> str:
    """Quote `text` as a single POSIX shell word."""
    return "'" + text.replace("'", "'\\''") + "'"
