"""``run``: execute a command in a pane split off the agent's pane.

The coordinator never runs the command itself. It writes a run spec, splits
the agent pane with the hidden ``_exec`` helper and polls for ``result.json``;
the helper tees the child's streams into the artifact directory so the
coordinator can replay them on its own stdout and stderr.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Sequence

from ..errors import WorkmuxError
from ..state.runs import (
    STDERR_FILENAME,
    STDOUT_FILENAME,
    RunResult,
    RunSpec,
    cleanup_run,
    create_run,
    generate_run_id,
    read_result,
    read_spec,
    write_result,
)
from .context import Coordinator

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
SPLIT_PERCENT = 30
_CHUNK_SIZE = 65536


@dataclass(slots=True)
class RunOutcome:
    run_dir: Path
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool
    kept: bool


def exec_argv(run_dir: Path) -> list[str]:
    return [sys.executable, "-m", "workmux", "_exec", "--run-dir", str(run_dir)]


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return ""


def run_in_worktree(
    coordinator: Coordinator,
    name: str,
    command: Sequence[str],
    *,
    timeout: float | None = None,
    keep: bool = False,
    on_started: Callable[[Path], None] | None = None,
) -> RunOutcome:
    """Run ``command`` next to the agent of ``name`` and wait for it.

    The artifact directory is removed in every outcome unless ``keep`` is
    set. On timeout the command is left running in its pane.
    """

    if not command:
        raise WorkmuxError("No command provided")
    worktree, agent = coordinator.resolve_agent(name)
    limit = coordinator.settings.run_timeout if timeout is None else timeout

    spec = RunSpec(command=list(command), worktree_path=str(worktree.path), timeout=limit)
    run_dir = create_run(coordinator.store.runs_dir, generate_run_id(), spec)
    try:
        if on_started is not None:
            on_started(run_dir)
        pane_id = coordinator.backend.split_pane(
            agent.state.pane_key, worktree.path, exec_argv(run_dir), percent=SPLIT_PERCENT
        )
        if pane_id is None:
            raise WorkmuxError(f"Failed to open a pane for worktree '{name}'")
        logger.info("Run started", extra={"run_dir": str(run_dir), "pane_id": pane_id})

        deadline = coordinator.clock() + limit
        while True:
            result = read_result(run_dir)
            if result is not None:
                return RunOutcome(
                    run_dir=run_dir,
                    exit_code=result.exit_status(),
                    stdout=_read_text(run_dir / STDOUT_FILENAME),
                    stderr=_read_text(run_dir / STDERR_FILENAME),
                    timed_out=False,
                    kept=keep,
                )
            remaining = deadline - coordinator.clock()
            if remaining <= 0:
                logger.info("Run timed out", extra={"run_dir": str(run_dir), "timeout": limit})
                return RunOutcome(
                    run_dir=run_dir,
                    exit_code=TIMEOUT_EXIT_CODE,
                    stdout="",
                    stderr="",
                    timed_out=True,
                    kept=keep,
                )
            coordinator.sleep(min(coordinator.settings.poll_interval, remaining))
    finally:
        if not keep:
            cleanup_run(run_dir)


def _tee(source: BinaryIO, sink: BinaryIO, echo: BinaryIO | None) -> None:
    fd = source.fileno()
    while True:
        chunk = os.read(fd, _CHUNK_SIZE)
        if not chunk:
            break
        sink.write(chunk)
        sink.flush()
        if echo is not None:
            echo.write(chunk)
            echo.flush()


def _record_result(run_dir: Path, result: RunResult) -> None:
    try:
        write_result(run_dir, result)
    except FileNotFoundError:
        logger.debug("Run directory removed before the result was written", extra={"run_dir": str(run_dir)})


def execute_run(run_dir: Path, *, echo: bool = True) -> int:
    """Body of the ``_exec`` helper: run the spec'd command and record its result."""

    run_dir = Path(run_dir)
    spec = read_spec(run_dir)
    stdout_path = run_dir / STDOUT_FILENAME
    stderr_path = run_dir / STDERR_FILENAME

    with stdout_path.open("wb") as out_file, stderr_path.open("wb") as err_file:
        try:
            process = subprocess.Popen(
                spec.command,
                cwd=spec.worktree_path,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            err_file.write(f"workmux: failed to start {spec.command[0]}: {exc}\n".encode())
            result = RunResult(exit_code=127, stdout_path=str(stdout_path), stderr_path=str(stderr_path))
            _record_result(run_dir, result)
            return result.exit_status()

        threads = [
            threading.Thread(
                target=_tee,
                args=(process.stdout, out_file, sys.stdout.buffer if echo else None),
                daemon=True,
            ),
            threading.Thread(
                target=_tee,
                args=(process.stderr, err_file, sys.stderr.buffer if echo else None),
                daemon=True,
            ),
        ]
        for thread in threads:
            thread.start()
        returncode = process.wait()
        for thread in threads:
            thread.join()
        process.stdout.close()
        process.stderr.close()

    if returncode < 0:
        result = RunResult(signal=-returncode, stdout_path=str(stdout_path), stderr_path=str(stderr_path))
    else:
        result = RunResult(exit_code=returncode, stdout_path=str(stdout_path), stderr_path=str(stderr_path))
    _record_result(run_dir, result)
    return result.exit_status()


__all__ = [
    "RunOutcome",
    "SPLIT_PERCENT",
    "TIMEOUT_EXIT_CODE",
    "exec_argv",
    "execute_run",
    "run_in_worktree",
]
