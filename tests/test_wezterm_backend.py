from __future__ import annotations

import json
from pathlib import Path

from conftest import failed, ok
from workmux.config import WorkmuxConfig
from workmux.coordinator import Coordinator, set_window_status
from workmux.multiplexer.runner import FakeCommandRunner
from workmux.multiplexer.types import BackendKind
from workmux.multiplexer.wezterm import WezTermBackend
from workmux.state.store import StateStore

ENV = {"WEZTERM_PANE": "7", "WEZTERM_UNIX_SOCKET": "/run/user/1000/wezterm/gui-sock-1"}

LISTING = [
    {
        "window_id": 0,
        "tab_id": 0,
        "pane_id": 7,
        "workspace": "default",
        "title": "claude",
        "cwd": "file://host/home/dev/repo%20one",
        "tty_name": "/dev/pts/4",
    },
    {
        "window_id": 0,
        "tab_id": 1,
        "pane_id": 8,
        "workspace": "default",
        "title": "zsh",
        "cwd": "file://host/home/dev",
        "tty_name": "/dev/pts/5",
    },
    {"window_id": 1, "tab_id": 2, "pane_id": 9, "tty_name": "/dev/pts/6"},
]

PROCESSES = [
    {"pid": 501, "name": "node", "terminal": "/dev/pts/4", "create_time": 20.0},
    {"pid": 500, "name": "zsh", "terminal": "/dev/pts/4", "create_time": 10.0},
    {"pid": 600, "name": "zsh", "terminal": "/dev/pts/5", "create_time": 11.0},
    {"pid": 1, "name": "init", "terminal": None, "create_time": 0.0},
]


def make_backend(
    runner: FakeCommandRunner,
    processes: list[dict] = PROCESSES,
    *,
    foreground: int | None = None,
    caller: set[int] | None = None,
) -> WezTermBackend:
    return WezTermBackend(
        env=ENV,
        runner=runner,
        processes=lambda: iter(processes),
        foreground_group=lambda tty: foreground,
        caller_pids=lambda: caller or set(),
    )


def test_identity_from_environment() -> None:
    backend = make_backend(FakeCommandRunner())

    key = backend.current_pane_key()

    assert key is not None
    assert key.backend is BackendKind.WEZTERM
    assert key.instance == "/run/user/1000/wezterm/gui-sock-1"
    assert key.pane_id == "7"
    assert WezTermBackend(env={}, runner=FakeCommandRunner()).instance == "default"


def test_live_panes_resolve_pids_through_tty() -> None:
    runner = FakeCommandRunner([ok(json.dumps(LISTING))])
    backend = make_backend(runner)

    panes = backend.live_panes()

    assert set(panes) == {"7", "8"}
    assert panes["7"].pid == 500
    assert panes["7"].current_command == "node"
    assert panes["7"].current_path == "/home/dev/repo one"
    assert panes["8"].pid == 600
    assert panes["8"].current_command == "zsh"
    assert runner.invocations == [("cli", "list", "--format", "json")]


WITH_CALLER = PROCESSES + [
    {"pid": 700, "name": "sh", "terminal": "/dev/pts/4", "create_time": 30.0},
    {"pid": 701, "name": "workmux", "terminal": "/dev/pts/4", "create_time": 31.0},
]


def test_foreground_skips_the_calling_process() -> None:
    backend = make_backend(
        FakeCommandRunner([ok(json.dumps(LISTING))]), WITH_CALLER, caller={700, 701}
    )

    panes = backend.live_panes()

    assert panes["7"].pid == 500
    assert panes["7"].current_command == "node"


def test_foreground_prefers_tty_process_group_leader() -> None:
    backend = make_backend(
        FakeCommandRunner([ok(json.dumps(LISTING))]), WITH_CALLER, foreground=501
    )

    assert backend.live_panes()["7"].current_command == "node"


def test_foreground_falls_back_to_shell_when_only_caller_remains() -> None:
    processes = [
        {"pid": 500, "name": "zsh", "terminal": "/dev/pts/4", "create_time": 10.0},
        {"pid": 701, "name": "workmux", "terminal": "/dev/pts/4", "create_time": 31.0},
    ]
    backend = make_backend(FakeCommandRunner([ok(json.dumps(LISTING))]), processes, caller={701})

    assert backend.live_panes()["7"].current_command == "zsh"


def test_status_hook_records_agent_command(settings, git, tmp_path) -> None:
    runner = FakeCommandRunner(responder=lambda args: ok(json.dumps(LISTING)))
    backend = make_backend(runner, WITH_CALLER, caller={700, 701})
    coordinator = Coordinator(
        settings=settings,
        store=StateStore.from_settings(settings),
        backend=backend,
        git=git,
        cwd=tmp_path,
        config=WorkmuxConfig(),
    )

    record = set_window_status(coordinator, "working")

    assert record.command == "node"
    assert record.pane_pid == 500
    assert coordinator.store.list_all() == [record]


def test_live_panes_empty_on_cli_failure_or_garbage() -> None:
    assert make_backend(FakeCommandRunner([failed("no running wezterm")])).live_panes() == {}
    assert make_backend(FakeCommandRunner([ok("not json")])).live_panes() == {}


def test_capture_and_send_use_pane_id() -> None:
    runner = FakeCommandRunner([ok("\x1b[1mbold\x1b[0m\n\n"), ok(), ok()])
    backend = make_backend(runner)
    key = backend.key_for("7")

    assert backend.capture_pane_text(key, 20) == "bold"
    assert backend.send_text(key, "continue")
    assert runner.invocations == [
        ("cli", "get-text", "--pane-id", "7", "--start-line", "-20"),
        ("cli", "send-text", "--pane-id", "7", "--no-paste", "continue"),
        ("cli", "send-text", "--pane-id", "7", "--no-paste", "\r"),
    ]


def test_multiline_send_uses_bracketed_paste() -> None:
    runner = FakeCommandRunner()
    backend = make_backend(runner)

    assert backend.send_text(backend.key_for("7"), "a\nb\n")
    assert runner.invocations[0] == ("cli", "send-text", "--pane-id", "7", "a\nb")


def test_split_pane_passes_argv() -> None:
    runner = FakeCommandRunner([ok("12\n")])
    backend = make_backend(runner)

    pane_id = backend.split_pane(backend.key_for("7"), Path("/repo"), ["echo", "hi there"], percent=30)

    assert pane_id == "12"
    assert runner.invocations[0][-3:] == ("--", "echo", "hi there")
    assert "--bottom" in runner.invocations[0]


def test_status_icons_are_noops() -> None:
    runner = FakeCommandRunner()
    backend = make_backend(runner)

    backend.set_status(backend.key_for("7"), "✅")
    backend.clear_status(backend.key_for("7"))

    assert runner.invocations == []


def test_foreground_group_led_by_caller_is_ignored() -> None:
    backend = make_backend(
        FakeCommandRunner([ok(json.dumps(LISTING))]), WITH_CALLER, foreground=701, caller={701}
    )

    assert backend.live_panes()["7"].current_command == "sh"
