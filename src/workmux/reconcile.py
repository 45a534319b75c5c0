"""Reconcile persisted agent records against the live multiplexer."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from .git import GitWorktrees, WorktreeInfo
from .multiplexer.base import MultiplexerBackend
from .multiplexer.types import LivePane
from .state.models import AgentStateRecord, ReconciledAgent
from .state.store import StateStore

logger = logging.getLogger(__name__)


class Liveness(str, Enum):
    LIVE = "live"
    STALE_GONE = "stale_gone"
    STALE_REUSED = "stale_reused"
    ORPHANED = "orphaned"


class Reconciler:
    """Validate every stored record and evict the stale ones.

    A record is stale when its pane is gone, or when both the pane's process
    id and its foreground command differ from what was recorded (the pane id
    was reused by an unrelated process). Records owned by a different
    multiplexer instance are left untouched.
    """

    def __init__(self, store: StateStore, backend: MultiplexerBackend) -> None:
        self._store = store
        self._backend = backend

    def classify(self, record: AgentStateRecord, live_panes: dict[str, LivePane]) -> Liveness:
        if not self._backend.owns(record.pane_key):
            return Liveness.ORPHANED
        pane = live_panes.get(record.pane_key.pane_id)
        if pane is None:
            return Liveness.STALE_GONE
        if pane.pid != record.pane_pid and pane.current_command != record.command:
            return Liveness.STALE_REUSED
        return Liveness.LIVE

    def live_records(self) -> list[AgentStateRecord]:
        """Records that survive validation, deleting stale ones as a side effect."""

        records = self._store.list_all()
        if not records:
            return []
        live_panes = self._backend.live_panes()
        survivors: list[AgentStateRecord] = []
        for record in records:
            verdict = self.classify(record, live_panes)
            if verdict is Liveness.LIVE:
                survivors.append(record)
            elif verdict is Liveness.ORPHANED:
                continue
            else:
                self._evict(record, verdict)
        return survivors

    def _evict(self, record: AgentStateRecord, verdict: Liveness) -> None:
        logger.info(
            "Removing stale agent state",
            extra={
                "pane_id": record.pane_key.pane_id,
                "reason": verdict.value,
                "workdir": record.workdir,
            },
        )
        self._store.delete(record.pane_key)
        if verdict is Liveness.STALE_REUSED:
            self._backend.clear_status(record.pane_key)

    def reconcile(self, worktrees: list[WorktreeInfo]) -> list[ReconciledAgent]:
        """Live agents joined with their worktrees, sorted by worktree then pane."""

        agents: list[ReconciledAgent] = []
        for record in self.live_records():
            match = GitWorktrees.match(record.workdir, worktrees)
            if match is not None:
                agents.append(
                    ReconciledAgent(state=record, worktree=str(match.path), branch=match.branch)
                )
            else:
                agents.append(ReconciledAgent(state=record, worktree=str(Path(record.workdir))))
        agents.sort(key=lambda agent: (agent.worktree, agent.pane_id))
        return agents


__all__ = ["Liveness", "Reconciler"]
