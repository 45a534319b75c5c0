"""Coordinator commands operating on reconciled agents."""

from .context import Coordinator
from .messaging import capture_worktree, send_to_worktree
from .run import RunOutcome, execute_run, run_in_worktree
from .status import filter_agents, render_table, status_rows
from .wait import WaitOutcome, WaitResult, wait_for_status
from .window_status import set_window_status

__all__ = [
    "Coordinator",
    "RunOutcome",
    "WaitOutcome",
    "WaitResult",
    "capture_worktree",
    "execute_run",
    "filter_agents",
    "render_table",
    "run_in_worktree",
    "send_to_worktree",
    "set_window_status",
    "status_rows",
    "wait_for_status",
]
