"""``send`` and ``capture``: talk to an agent's pane."""

from __future__ import annotations

from ..errors import NoAgentError
from ..state.models import ReconciledAgent
from .context import Coordinator


def send_to_worktree(coordinator: Coordinator, name: str, text: str) -> ReconciledAgent:
    _, agent = coordinator.resolve_agent(name)
    if not coordinator.backend.send_text(agent.state.pane_key, text):
        raise NoAgentError(name, "pane disappeared")
    return agent


def capture_worktree(coordinator: Coordinator, name: str, lines: int | None = None) -> str:
    _, agent = coordinator.resolve_agent(name)
    count = coordinator.settings.capture_lines if lines is None else lines
    text = coordinator.backend.capture_pane_text(agent.state.pane_key, count)
    if text is None:
        raise NoAgentError(name, "pane disappeared")
    return text


__all__ = ["capture_worktree", "send_to_worktree"]
