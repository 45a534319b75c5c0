from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Sequence

import pytest

from workmux.config import WorkmuxConfig, WorkmuxSettings
from workmux.coordinator import Coordinator, execute_run
from workmux.git import GitWorktrees
from workmux.multiplexer.base import MultiplexerBackend
from workmux.multiplexer.runner import CommandResult, FakeCommandRunner
from workmux.multiplexer.types import BackendKind, LivePane, PaneKey
from workmux.multiplexer.utils import strip_ansi, tail_lines
from workmux.state.models import AgentStateRecord
from workmux.state.store import StateStore

INSTANCE = "/tmp/tmux-test/default"


class FakeMultiplexer(MultiplexerBackend):
    """In-memory multiplexer with scripted panes."""

    kind = BackendKind.TMUX

    def __init__(self, instance: str = INSTANCE, current_pane: str | None = None) -> None:
        super().__init__({})
        self._instance = instance
        self.current_pane = current_pane
        self.panes: dict[str, LivePane] = {}
        self.screens: dict[str, str] = {}
        self.sent: list[tuple[str, str]] = []
        self.splits: list[tuple[str, Path, list[str], int]] = []
        self.icons: dict[str, str] = {}
        self.cleared: list[str] = []
        self.split_handler: Callable[[Sequence[str]], str | None] | None = None

    @property
    def instance(self) -> str:
        return self._instance

    def current_pane_id(self) -> str | None:
        return self.current_pane

    def add_pane(self, pane_id: str, pid: int = 4242, command: str = "claude", title: str | None = None) -> LivePane:
        pane = LivePane(pane_id=pane_id, pid=pid, current_command=command, title=title)
        self.panes[pane_id] = pane
        return pane

    def live_panes(self) -> dict[str, LivePane]:
        return dict(self.panes)

    def capture_pane_text(self, key: PaneKey, max_lines: int) -> str | None:
        if not self.owns(key) or key.pane_id not in self.panes:
            return None
        return tail_lines(strip_ansi(self.screens.get(key.pane_id, "")), max_lines)

    def send_text(self, key: PaneKey, text: str) -> bool:
        if not self.owns(key) or key.pane_id not in self.panes:
            return False
        self.sent.append((key.pane_id, text))
        return True

    def split_pane(self, key: PaneKey, cwd: Path, argv: Sequence[str], *, percent: int = 30) -> str | None:
        if not self.owns(key) or key.pane_id not in self.panes:
            return None
        self.splits.append((key.pane_id, Path(cwd), list(argv), percent))
        if self.split_handler is not None:
            return self.split_handler(argv)
        return "%99"

    def set_status(self, key: PaneKey, icon: str) -> None:
        self.icons[key.pane_id] = icon

    def clear_status(self, key: PaneKey) -> None:
        self.icons.pop(key.pane_id, None)
        self.cleared.append(key.pane_id)


class FakeClock:
    """Monotonic clock that only advances when slept on."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def run_exec_in_thread(argv: Sequence[str]) -> str:
    """Split handler that runs the real ``_exec`` helper in the background."""

    run_dir = Path(argv[list(argv).index("--run-dir") + 1])
    thread = threading.Thread(target=execute_run, args=(run_dir,), kwargs={"echo": False}, daemon=True)
    thread.start()
    return "%99"


def ok(stdout: str = "", *args: str) -> CommandResult:
    return CommandResult(args=args, returncode=0, stdout=stdout, stderr="")


def failed(stderr: str = "", returncode: int = 1, *args: str) -> CommandResult:
    return CommandResult(args=args, returncode=returncode, stdout="", stderr=stderr)


def porcelain(*entries: tuple[Path, str | None]) -> str:
    blocks = []
    for path, branch in entries:
        lines = [f"worktree {path}", "HEAD 0123456789abcdef0123456789abcdef01234567"]
        lines.append(f"branch refs/heads/{branch}" if branch else "detached")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


@pytest.fixture
def settings(tmp_path: Path) -> WorkmuxSettings:
    return WorkmuxSettings(
        state_home=tmp_path / "state",
        config_home=tmp_path / "config",
        poll_interval=0.01,
        wait_timeout=5,
        run_timeout=10,
    )


@pytest.fixture
def worktree_paths(tmp_path: Path) -> dict[str, Path]:
    paths = {
        "main": tmp_path / "work" / "main",
        "feature-auth": tmp_path / "work" / "feature-auth",
    }
    for path in paths.values():
        path.mkdir(parents=True)
    return {name: path.resolve() for name, path in paths.items()}


@pytest.fixture
def git(worktree_paths: dict[str, Path]) -> GitWorktrees:
    output = porcelain(
        (worktree_paths["main"], "main"),
        (worktree_paths["feature-auth"], "feature/auth"),
    )
    runner = FakeCommandRunner(responder=lambda args: ok(output), name="git")
    return GitWorktrees(runner=runner)


@pytest.fixture
def backend() -> FakeMultiplexer:
    return FakeMultiplexer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def coordinator(settings, backend, git, tmp_path: Path) -> Coordinator:
    return Coordinator(
        settings=settings,
        store=StateStore.from_settings(settings),
        backend=backend,
        git=git,
        cwd=tmp_path,
        config=WorkmuxConfig(),
    )


@pytest.fixture
def add_agent(coordinator: Coordinator, backend: FakeMultiplexer):
    def _add(
        pane_id: str,
        workdir: Path,
        status: str | None = "working",
        *,
        pid: int = 4242,
        command: str = "claude",
        live: bool = True,
    ) -> AgentStateRecord:
        if live:
            backend.add_pane(pane_id, pid=pid, command=command)
        record = AgentStateRecord(
            pane_key=backend.key_for(pane_id),
            pane_pid=pid,
            command=command,
            workdir=str(workdir),
            status=status,
        )
        coordinator.store.write(record)
        return record

    return _add


@pytest.fixture
def exec_split_handler() -> Callable[[Sequence[str]], str]:
    return run_exec_in_thread
