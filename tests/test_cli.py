from __future__ import annotations

import argparse
import importlib.util
import json
import os
import shutil
import sys
from pathlib import Path

import pytest

from workmux import cli
from workmux.errors import InvalidArgumentError
from workmux.git import GitWorktrees
from workmux.multiplexer.runner import CommandNotFoundError, FakeCommandRunner
from workmux.state.runs import RunResult, RunSpec, create_run, write_result
from workmux.state.store import StateStore

requires_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="requires a POSIX shell")


@pytest.fixture
def run_cli(monkeypatch, settings, coordinator):
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli, "build_coordinator", lambda _settings: coordinator)
    return cli.main


def test_status_without_agents(run_cli, capsys) -> None:
    assert run_cli(["status"]) == 0
    assert capsys.readouterr().out.strip() == "No active agents"

    assert run_cli(["status", "--json"]) == 0
    assert json.loads(capsys.readouterr().out) == []


def test_status_json_reflects_latest_write(run_cli, add_agent, worktree_paths, capsys) -> None:
    add_agent("%1", worktree_paths["main"], "working")
    run_cli(["status", "--json"])
    assert [row["status"] for row in json.loads(capsys.readouterr().out)] == ["working"]

    add_agent("%1", worktree_paths["main"], "done")
    run_cli(["status", "--json", "main"])

    rows = json.loads(capsys.readouterr().out)
    assert len(rows) == 1
    assert rows[0]["status"] == "done"
    assert rows[0]["pane_id"] == "%1"


def test_wait_rejects_unknown_status(run_cli, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["wait", "main", "--status", "done,finished"])

    assert excinfo.value.code == 2
    assert "Invalid status" in capsys.readouterr().err


def test_wait_succeeds_immediately(run_cli, add_agent, worktree_paths) -> None:
    add_agent("%1", worktree_paths["main"], "waiting")
    assert run_cli(["wait", "main", "--status", "done,waiting", "--timeout", "5"]) == 0


def test_wait_timeout_exit_code(run_cli, add_agent, worktree_paths, capsys) -> None:
    add_agent("%1", worktree_paths["main"], "working")

    assert run_cli(["wait", "main", "--timeout", "0.05"]) == 1
    assert "Timeout" in capsys.readouterr().err


def test_missing_worktree_and_agent_have_distinct_errors(run_cli, capsys) -> None:
    assert run_cli(["capture", "nope"]) == 1
    assert capsys.readouterr().err.strip() == "Error: Worktree 'nope' not found"

    assert run_cli(["send", "main", "hello"]) == 1
    assert capsys.readouterr().err.strip() == "Error: No agent running in worktree 'main'"


def test_send_sources_are_mutually_exclusive(run_cli, tmp_path, capsys) -> None:
    message = tmp_path / "msg.txt"
    message.write_text("hi", encoding="utf-8")

    with pytest.raises(SystemExit) as both:
        run_cli(["send", "main", "hello", "--file", str(message)])
    assert both.value.code == 2
    assert "not allowed with" in capsys.readouterr().err

    with pytest.raises(SystemExit) as neither:
        run_cli(["send", "main"])
    assert neither.value.code == 2


def test_send_from_file(run_cli, add_agent, backend, worktree_paths, tmp_path) -> None:
    add_agent("%1", worktree_paths["main"])
    message = tmp_path / "msg.txt"
    message.write_text("line one\nline two\n", encoding="utf-8")

    assert run_cli(["send", "main", "--file", str(message)]) == 0
    assert backend.sent == [("%1", "line one\nline two\n")]


def test_capture_prints_clean_text(run_cli, add_agent, backend, worktree_paths, capsys) -> None:
    add_agent("%1", worktree_paths["main"])
    backend.screens["%1"] = "\x1b[1mdone\x1b[0m\nall tests passed\n"

    assert run_cli(["capture", "main", "-n", "1"]) == 0
    out = capsys.readouterr().out
    assert out == "all tests passed\n"
    assert "\x1b[" not in out


@requires_sh
def test_run_mirrors_child(run_cli, add_agent, backend, worktree_paths, exec_split_handler, capsys) -> None:
    backend.split_handler = exec_split_handler
    add_agent("%1", worktree_paths["main"])

    code = run_cli(["run", "main", "--", "sh", "-c", "echo OUT; echo ERR >&2; exit 42"])

    captured = capsys.readouterr()
    assert code == 42
    assert captured.out == "OUT\n"
    assert "ERR\n" in captured.err
    assert "OUT" not in captured.err
    assert captured.err.startswith("Artifacts: ")


def test_run_timeout(run_cli, coordinator, add_agent, backend, worktree_paths, clock, capsys) -> None:
    backend.split_handler = lambda argv: "%99"
    coordinator.clock, coordinator.sleep = clock, clock.sleep
    add_agent("%1", worktree_paths["main"])

    code = run_cli(["run", "main", "--timeout", "1", "--", "sleep", "30"])

    err = capsys.readouterr().err
    assert code == 124
    assert "Timeout after 1s" in err
    assert list(coordinator.store.runs_dir.iterdir()) == []


def test_run_keep_reports_artifacts(run_cli, coordinator, add_agent, backend, worktree_paths, clock, capsys) -> None:
    backend.split_handler = lambda argv: "%99"
    coordinator.clock, coordinator.sleep = clock, clock.sleep
    add_agent("%1", worktree_paths["main"])

    run_cli(["run", "main", "--keep", "--timeout", "1", "--", "true"])

    err = capsys.readouterr().err
    assert "Artifacts kept at: " in err
    assert len(list(coordinator.store.runs_dir.iterdir())) == 1


def test_exec_helper_is_hidden_and_runnable(run_cli, tmp_path, capsys) -> None:
    with pytest.raises(SystemExit):
        run_cli(["--help"])
    assert "_exec" not in capsys.readouterr().out

    run_dir = create_run(
        tmp_path / "runs",
        "abc-1",
        RunSpec(command=[sys.executable, "-c", "raise SystemExit(5)"], worktree_path=str(tmp_path)),
    )
    assert run_cli(["_exec", "--run-dir", str(run_dir)]) == 5


def test_set_window_status_outside_multiplexer(run_cli, backend, coordinator) -> None:
    backend.current_pane = None
    assert run_cli(["set-window-status", "done"]) == 0
    assert coordinator.store.list_all() == []


def load_diag_module():
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "workmux_diag.py"
    spec = importlib.util.spec_from_file_location("workmux_diag_test_module", module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


def test_diag_agents_reports_unreadable_files(monkeypatch, tmp_path, add_agent, worktree_paths, coordinator, capsys) -> None:
    add_agent("%1", worktree_paths["main"], "done")
    (coordinator.store.agents_dir / "tmux__bad.json").write_text("nope", encoding="utf-8")
    diag = load_diag_module()
    monkeypatch.setattr(diag, "load_store", lambda _settings: coordinator.store)

    diag.cmd_agents(argparse.Namespace(json=True))

    payload = json.loads(capsys.readouterr().out)
    assert [record["status"] for record in payload["agents"]] == ["done"]
    assert payload["unreadable"][0].endswith("tmux__bad.json")


def test_diag_prunes_old_runs(monkeypatch, tmp_path, capsys) -> None:
    store = StateStore(tmp_path / "state")
    old = create_run(store.runs_dir, "old-1", RunSpec(command=["true"], worktree_path="/repo"))
    fresh = create_run(store.runs_dir, "fresh-2", RunSpec(command=["true"], worktree_path="/repo"))
    write_result(fresh, RunResult(exit_code=0))
    os.utime(old, (0, 0))
    diag = load_diag_module()
    monkeypatch.setattr(diag, "load_store", lambda _settings: store)

    diag.cmd_runs(argparse.Namespace())
    listing = json.loads(capsys.readouterr().out)
    assert [(run["run_id"], run["completed"]) for run in listing] == [("old-1", False), ("fresh-2", True)]

    diag.cmd_prune_runs(argparse.Namespace(older_than=1.0))

    assert json.loads(capsys.readouterr().out) == {"removed": ["old-1"]}
    assert not old.exists()
    assert fresh.exists()


def test_run_rejects_empty_command(coordinator) -> None:
    args = argparse.Namespace(worktree="main", command=["--"], timeout=None, keep=False)

    with pytest.raises(InvalidArgumentError, match="No command provided"):
        cli.cmd_run(args, coordinator)


def test_diag_prune_keeps_runs_in_progress(monkeypatch, tmp_path, capsys) -> None:
    store = StateStore(tmp_path / "state")
    running = create_run(
        store.runs_dir, "running-1", RunSpec(command=["sleep", "30"], worktree_path="/repo", timeout=3600)
    )
    diag = load_diag_module()
    monkeypatch.setattr(diag, "load_store", lambda _settings: store)

    diag.main(["prune-runs"])
    assert json.loads(capsys.readouterr().out) == {"removed": []}

    diag.main(["prune-runs", "--older-than", "0"])
    assert json.loads(capsys.readouterr().out) == {"removed": []}
    assert running.exists()

    write_result(running, RunResult(exit_code=0))
    os.utime(running, (0, 0))
    diag.main(["prune-runs", "--older-than", "0"])

    assert json.loads(capsys.readouterr().out) == {"removed": ["running-1"]}
    assert not running.exists()


def test_status_succeeds_without_git_or_multiplexer(run_cli, coordinator, backend, add_agent, worktree_paths, capsys) -> None:
    add_agent("%1", worktree_paths["main"], "working")

    def missing(*_args):
        raise CommandNotFoundError("tmux executable not found on PATH")

    coordinator.git = GitWorktrees(runner=FakeCommandRunner(responder=missing, name="git"))
    assert run_cli(["status", "--json"]) == 0
    assert [row["worktree"] for row in json.loads(capsys.readouterr().out)] == ["main"]

    backend.live_panes = missing
    assert run_cli(["status"]) == 0
    assert capsys.readouterr().out.strip() == "No active agents"
    assert len(coordinator.store.list_all()) == 1
