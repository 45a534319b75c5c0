"""``status``: list live agents as a table or JSON."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from ..multiplexer.runner import CommandRunnerError
from ..state.models import ReconciledAgent
from ..util import format_elapsed_secs
from .context import Coordinator

COLUMNS = ("WORKTREE", "BRANCH", "STATUS", "ELAPSED", "PANE")
EMPTY_MESSAGE = "No active agents"

logger = logging.getLogger(__name__)


def _handle(agent: ReconciledAgent) -> str:
    return Path(agent.worktree).name


def filter_agents(agents: list[ReconciledAgent], query: str | None) -> list[ReconciledAgent]:
    """Exact handle/branch matches win; otherwise fall back to substrings."""

    if not query:
        return agents
    exact = [a for a in agents if query in (_handle(a), a.branch)]
    if exact:
        return exact
    return [a for a in agents if query in _handle(a) or (a.branch and query in a.branch)]


def agent_row(agent: ReconciledAgent, now: datetime) -> dict[str, Any]:
    state = agent.state
    return {
        "worktree": _handle(agent),
        "path": agent.worktree,
        "branch": agent.branch,
        "status": state.status,
        "pane_id": state.pane_key.pane_id,
        "backend": state.pane_key.backend.value,
        "instance": state.pane_key.instance,
        "pane_pid": state.pane_pid,
        "command": state.command,
        "workdir": state.workdir,
        "updated_at": state.updated_at.isoformat(),
        "elapsed_secs": state.elapsed_secs(now),
    }


def status_rows(coordinator: Coordinator, query: str | None = None) -> list[dict[str, Any]]:
    try:
        reconciled = coordinator.reconcile()
    except CommandRunnerError as exc:
        logger.warning("Multiplexer unavailable; no agents to report", extra={"error": str(exc)})
        return []
    agents = filter_agents(reconciled, query)
    now = coordinator.now()
    return [agent_row(agent, now) for agent in agents]


def render_table(rows: list[dict[str, Any]]) -> str:
    if not rows:
        return EMPTY_MESSAGE
    cells = [
        (
            row["worktree"],
            row["branch"] or "-",
            row["status"] or "-",
            format_elapsed_secs(row["elapsed_secs"]),
            row["pane_id"],
        )
        for row in rows
    ]
    widths = [max(len(col), *(len(str(line[i])) for line in cells)) for i, col in enumerate(COLUMNS)]
    lines = ["  ".join(col.ljust(widths[i]) for i, col in enumerate(COLUMNS)).rstrip()]
    for line in cells:
        lines.append("  ".join(str(value).ljust(widths[i]) for i, value in enumerate(line)).rstrip())
    return "\n".join(lines)


__all__ = ["COLUMNS", "EMPTY_MESSAGE", "agent_row", "filter_agents", "render_table", "status_rows"]
