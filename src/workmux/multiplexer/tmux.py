"""tmux backend driven through the tmux command-line client."""

from __future__ import annotations

import logging
import os
import shlex
import time
from pathlib import Path
from typing import Mapping, Sequence

from .base import MultiplexerBackend
from .runner import CommandResult, CommandRunner
from .types import BackendKind, LivePane, PaneKey
from .utils import strip_ansi, tail_lines

logger = logging.getLogger(__name__)

PANE_FORMAT = "\t".join(
    [
        "#{pane_id}",
        "#{pane_pid}",
        "#{pane_current_command}",
        "#{session_name}",
        "#{window_name}",
        "#{pane_title}",
        "#{pane_current_path}",
    ]
)
PASTE_BUFFER = "workmux-send"


def parse_pane_line(line: str) -> LivePane | None:
    """Parse one ``PANE_FORMAT`` line; ``None`` for malformed lines."""

    parts = line.split("\t", 6)
    if len(parts) < 3 or not parts[0]:
        return None
    try:
        pid = int(parts[1])
    except ValueError:
        return None
    extra = parts[3:] + [""] * (7 - len(parts))
    return LivePane(
        pane_id=parts[0],
        pid=pid,
        current_command=parts[2],
        session=extra[0] or None,
        window=extra[1] or None,
        title=extra[2] or None,
        current_path=extra[3] or None,
    )


class TmuxBackend(MultiplexerBackend):
    """Query and drive panes of one tmux server."""

    kind = BackendKind.TMUX

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        super().__init__(os.environ if env is None else env)
        self._runner = runner
        self._instance: str | None = None

    @property
    def runner(self) -> CommandRunner:
        if self._runner is None:
            self._runner = CommandRunner("tmux")
        return self._runner

    def _tmux(self, *args: str, input: str | None = None) -> CommandResult:
        result = self.runner.run(*args, input=input)
        if not result.ok:
            logger.debug(
                "tmux command failed",
                extra={"args": args, "returncode": result.returncode, "stderr": result.stderr.strip()},
            )
        return result

    @property
    def instance(self) -> str:
        if self._instance is None:
            self._instance = self._detect_instance()
        return self._instance

    def _detect_instance(self) -> str:
        tmux_env = self._env.get("TMUX", "")
        if tmux_env:
            socket_path = tmux_env.split(",", 1)[0]
            if socket_path:
                return socket_path
        result = self._tmux("display-message", "-p", "#{socket_path}")
        socket_path = result.stdout.strip() if result.ok else ""
        return socket_path or "default"

    def current_pane_id(self) -> str | None:
        return self._env.get("TMUX_PANE") or None

    def live_panes(self) -> dict[str, LivePane]:
        result = self._tmux("list-panes", "-a", "-F", PANE_FORMAT)
        if not result.ok:
            return {}
        panes: dict[str, LivePane] = {}
        for line in result.stdout.splitlines():
            pane = parse_pane_line(line)
            if pane is not None:
                panes[pane.pane_id] = pane
        return panes

    def describe_pane(self, key: PaneKey) -> LivePane | None:
        if not self.owns(key):
            return None
        result = self._tmux("display-message", "-p", "-t", key.pane_id, PANE_FORMAT)
        if not result.ok:
            return None
        pane = parse_pane_line(result.stdout.rstrip("\n"))
        if pane is None or pane.pane_id != key.pane_id:
            return None
        return pane

    def capture_pane_text(self, key: PaneKey, max_lines: int) -> str | None:
        if not self.owns(key):
            return None
        result = self._tmux(
            "capture-pane", "-p", "-J", "-t", key.pane_id, "-S", f"-{max_lines}"
        )
        if not result.ok:
            return None
        return tail_lines(strip_ansi(result.stdout), max_lines)

    def send_text(self, key: PaneKey, text: str) -> bool:
        if not self.owns(key):
            return False
        payload = text.rstrip("\n")
        if "\n" in payload:
            loaded = self._tmux("load-buffer", "-b", PASTE_BUFFER, "-", input=payload)
            if not loaded.ok:
                return False
            delivered = self._tmux(
                "paste-buffer", "-b", PASTE_BUFFER, "-d", "-p", "-t", key.pane_id
            )
        else:
            delivered = self._tmux("send-keys", "-t", key.pane_id, "-l", "--", payload)
        if not delivered.ok:
            return False
        return self._tmux("send-keys", "-t", key.pane_id, "Enter").ok

    def split_pane(
        self,
        key: PaneKey,
        cwd: Path,
        argv: Sequence[str],
        *,
        percent: int = 30,
    ) -> str | None:
        if not self.owns(key):
            return None
        result = self._tmux(
            "split-window",
            "-d",
            "-v",
            "-t",
            key.pane_id,
            "-c",
            str(cwd),
            "-l",
            f"{percent}%",
            "-P",
            "-F",
            "#{pane_id}",
            shlex.join(argv),
        )
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def set_status(self, key: PaneKey, icon: str) -> None:
        if not self.owns(key):
            return
        now = str(int(time.time()))
        # Window options drive the status bar, pane options the per-pane view.
        for scope, name, value in (
            ("-w", "@workmux_status", icon),
            ("-w", "@workmux_status_ts", now),
            ("-p", "@workmux_pane_status", icon),
            ("-p", "@workmux_pane_status_ts", now),
        ):
            result = self._tmux("set-option", scope, "-t", key.pane_id, name, value)
            if not result.ok:
                logger.warning(
                    "Failed to set tmux status option",
                    extra={"pane_id": key.pane_id, "option": name},
                )

    def clear_status(self, key: PaneKey) -> None:
        if not self.owns(key):
            return
        for scope, name in (
            ("-uw", "@workmux_status"),
            ("-uw", "@workmux_status_ts"),
            ("-up", "@workmux_pane_status"),
            ("-up", "@workmux_pane_status_ts"),
        ):
            self._tmux("set-option", scope, "-t", key.pane_id, name)


__all__ = ["PANE_FORMAT", "TmuxBackend", "parse_pane_line"]
