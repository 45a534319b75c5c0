"""WezTerm backend driven through ``wezterm cli``."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence
from urllib.parse import unquote, urlparse

import psutil

from .base import MultiplexerBackend
from .runner import CommandResult, CommandRunner
from .types import BackendKind, LivePane, PaneKey
from .utils import strip_ansi, tail_lines

logger = logging.getLogger(__name__)

ProcessSource = Callable[[], Iterable[dict[str, Any]]]
ForegroundGroup = Callable[[str], int | None]
CallerPids = Callable[[], set[int]]


def _psutil_processes() -> Iterable[dict[str, Any]]:
    for proc in psutil.process_iter(["pid", "name", "terminal", "create_time"]):
        yield proc.info


def _tty_foreground_group(tty: str) -> int | None:
    try:
        fd = os.open(tty, os.O_RDONLY | os.O_NOCTTY | os.O_NONBLOCK)
    except OSError:
        return None
    try:
        return os.tcgetpgrp(fd)
    except OSError:
        return None
    finally:
        os.close(fd)


def _caller_pids() -> set[int]:
    """This process plus the ancestors that share its process group.

    Hook shells spawned by an agent run in the agent's process group; the
    walk stops at the group leader so the agent itself is never skipped.
    """

    own = os.getpid()
    group = os.getpgrp()
    skipped = {own}
    try:
        for parent in psutil.Process(own).parents():
            if parent.pid == group or os.getpgid(parent.pid) != group:
                break
            skipped.add(parent.pid)
    except (psutil.Error, OSError):
        pass
    return skipped


def _path_from_cwd_url(value: str | None) -> str | None:
    if not value:
        return None
    if value.startswith("file://"):
        return unquote(urlparse(value).path) or None
    return value


class WezTermBackend(MultiplexerBackend):
    """Query and drive panes of one WezTerm mux server.

    ``wezterm cli list`` does not report process ids, so the pane's shell and
    foreground process are looked up through its tty with ``psutil``. The
    earliest process on the tty is the pane's shell. The foreground command is
    the leader of the tty's foreground process group, or failing that the
    newest process on the tty that is not workmux itself.
    """

    kind = BackendKind.WEZTERM

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        runner: CommandRunner | None = None,
        processes: ProcessSource | None = None,
        foreground_group: ForegroundGroup | None = None,
        caller_pids: CallerPids | None = None,
    ) -> None:
        super().__init__(os.environ if env is None else env)
        self._runner = runner
        self._processes = processes or _psutil_processes
        self._foreground_group = foreground_group or _tty_foreground_group
        self._caller_pids = caller_pids or _caller_pids

    @property
    def runner(self) -> CommandRunner:
        if self._runner is None:
            self._runner = CommandRunner("wezterm")
        return self._runner

    def _cli(self, *args: str, input: str | None = None) -> CommandResult:
        result = self.runner.run("cli", *args, input=input)
        if not result.ok:
            logger.debug(
                "wezterm cli failed",
                extra={"args": args, "returncode": result.returncode, "stderr": result.stderr.strip()},
            )
        return result

    @property
    def instance(self) -> str:
        return self._env.get("WEZTERM_UNIX_SOCKET") or "default"

    def current_pane_id(self) -> str | None:
        return self._env.get("WEZTERM_PANE") or None

    def _processes_by_tty(self) -> dict[str, list[dict[str, Any]]]:
        grouped: dict[str, list[dict[str, Any]]] = {}
        try:
            for info in self._processes():
                terminal = info.get("terminal")
                if terminal:
                    grouped.setdefault(terminal, []).append(info)
        except psutil.Error as exc:
            logger.warning("Unable to enumerate processes", extra={"error": str(exc)})
        for members in grouped.values():
            members.sort(key=lambda item: (item.get("create_time") or 0.0, item.get("pid") or 0))
        return grouped

    def _foreground(self, tty: str, members: list[dict[str, Any]], skipped: set[int]) -> dict[str, Any]:
        group = self._foreground_group(tty)
        if group is not None and group not in skipped:
            for info in members:
                if info.get("pid") == group:
                    return info
        candidates = [info for info in members if info.get("pid") not in skipped]
        return candidates[-1] if candidates else members[0]

    def live_panes(self) -> dict[str, LivePane]:
        result = self._cli("list", "--format", "json")
        if not result.ok:
            return {}
        try:
            entries = json.loads(result.stdout or "[]")
        except json.JSONDecodeError:
            logger.warning("Unparseable wezterm pane listing")
            return {}

        by_tty = self._processes_by_tty()
        skipped = self._caller_pids()
        panes: dict[str, LivePane] = {}
        for entry in entries:
            if not isinstance(entry, dict) or "pane_id" not in entry:
                continue
            pane_id = str(entry["pane_id"])
            tty = entry.get("tty_name") or ""
            members = by_tty.get(tty, [])
            if not members:
                # A pane without a visible process cannot be verified.
                continue
            shell = members[0]
            foreground = self._foreground(tty, members, skipped)
            panes[pane_id] = LivePane(
                pane_id=pane_id,
                pid=int(shell["pid"]),
                current_command=foreground.get("name") or "",
                session=entry.get("workspace"),
                window=str(entry["window_id"]) if "window_id" in entry else None,
                title=entry.get("title") or None,
                current_path=_path_from_cwd_url(entry.get("cwd")),
            )
        return panes

    def capture_pane_text(self, key: PaneKey, max_lines: int) -> str | None:
        if not self.owns(key):
            return None
        result = self._cli(
            "get-text", "--pane-id", key.pane_id, "--start-line", f"-{max_lines}"
        )
        if not result.ok:
            return None
        return tail_lines(strip_ansi(result.stdout), max_lines)

    def send_text(self, key: PaneKey, text: str) -> bool:
        if not self.owns(key):
            return False
        payload = text.rstrip("\n")
        if "\n" in payload:
            delivered = self._cli("send-text", "--pane-id", key.pane_id, payload)
        else:
            delivered = self._cli("send-text", "--pane-id", key.pane_id, "--no-paste", payload)
        if not delivered.ok:
            return False
        return self._cli("send-text", "--pane-id", key.pane_id, "--no-paste", "\r").ok

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
        result = self._cli(
            "split-pane",
            "--pane-id",
            key.pane_id,
            "--bottom",
            "--percent",
            str(percent),
            "--cwd",
            str(cwd),
            "--",
            *argv,
        )
        if not result.ok:
            return None
        return result.stdout.strip() or None


__all__ = ["WezTermBackend"]
