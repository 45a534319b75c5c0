"""Utility helpers shared by the multiplexer backends."""

from __future__ import annotations

import os
import re
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}

# OSC, DCS, SOS, PM and APC strings end with BEL or ST (ESC \).
_STRING_SEQUENCE_RE = re.compile(r"\x1b[\]PX^_].*?(?:\x07|\x1b\\)", re.DOTALL)
_CSI_RE = re.compile(r"(?:\x1b\[|\x9b)[0-?]*[ -/]*[@-~]")
_ESCAPE_RE = re.compile(r"\x1b[ -/]*[0-~]")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f\x9b]")


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for subprocess execution."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update(additional)
    return env


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences and control characters.

    Newlines and tabs survive; carriage returns are dropped.
    """

    cleaned = text.replace("\r\n", "\n")
    cleaned = _STRING_SEQUENCE_RE.sub("", cleaned)
    cleaned = _CSI_RE.sub("", cleaned)
    cleaned = _ESCAPE_RE.sub("", cleaned)
    return _CONTROL_RE.sub("", cleaned)


def tail_lines(text: str, max_lines: int) -> str:
    """Return the last ``max_lines`` lines of ``text`` without trailing blanks."""

    lines = text.rstrip("\n").split("\n")
    while lines and not lines[-1].strip():
        lines.pop()
    if max_lines > 0:
        lines = lines[-max_lines:]
    return "\n".join(lines)


__all__ = ["sanitize_environment", "strip_ansi", "tail_lines"]
