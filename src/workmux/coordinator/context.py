"""Shared collaborators for coordinator commands."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping

from ..config import WorkmuxConfig, WorkmuxSettings, load_config
from ..errors import NoAgentError
from ..git import GitError, GitWorktrees, WorktreeInfo
from ..multiplexer import MultiplexerBackend, create_backend, detect_backend
from ..multiplexer.runner import CommandRunnerError
from ..reconcile import Reconciler
from ..state.models import ReconciledAgent, utc_now
from ..state.store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class Coordinator:
    """Everything a coordinator command needs for one invocation.

    ``clock``/``sleep``/``now`` are injectable so polling commands can be
    driven deterministically in tests.
    """

    settings: WorkmuxSettings
    store: StateStore
    backend: MultiplexerBackend
    git: GitWorktrees
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], None] = time.sleep
    now: Callable[[], datetime] = utc_now
    cwd: Path | None = None
    config: WorkmuxConfig | None = field(default=None)

    @classmethod
    def from_settings(
        cls,
        settings: WorkmuxSettings,
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> "Coordinator":
        environ = os.environ if env is None else env
        kind = detect_backend(environ, settings.backend)
        return cls(
            settings=settings,
            store=StateStore.from_settings(settings),
            backend=create_backend(kind, env=environ),
            git=GitWorktrees(cwd=cwd),
            cwd=cwd,
        )

    def load_config(self) -> WorkmuxConfig:
        if self.config is None:
            self.config = load_config(self.settings, self.cwd)
        return self.config

    def worktrees(self) -> list[WorktreeInfo]:
        """Known worktrees; empty outside a git repository."""

        try:
            return self.git.list()
        except (GitError, CommandRunnerError) as exc:
            logger.debug("Worktree listing unavailable", extra={"error": str(exc)})
            return []

    def reconcile(self) -> list[ReconciledAgent]:
        return Reconciler(self.store, self.backend).reconcile(self.worktrees())

    def resolve_worktree(self, name: str) -> WorktreeInfo:
        return self.git.find(name)

    def agents_in(self, worktree: WorktreeInfo) -> list[ReconciledAgent]:
        target = str(worktree.path)
        return [agent for agent in self.reconcile() if agent.worktree == target]

    def resolve_agents(self, name: str) -> tuple[WorktreeInfo, list[ReconciledAgent]]:
        worktree = self.resolve_worktree(name)
        agents = self.agents_in(worktree)
        if not agents:
            raise NoAgentError(name)
        return worktree, agents

    def resolve_agent(self, name: str) -> tuple[WorktreeInfo, ReconciledAgent]:
        worktree, agents = self.resolve_agents(name)
        return worktree, agents[0]


__all__ = ["Coordinator"]
