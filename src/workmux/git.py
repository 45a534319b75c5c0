"""Git worktree discovery."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .errors import WorkmuxError, WorktreeNotFoundError
from .multiplexer.runner import CommandRunner
from .util import canon_or_self, is_within

logger = logging.getLogger(__name__)

BRANCH_PREFIX = "refs/heads/"


class GitError(WorkmuxError):
    """Raised when git cannot list worktrees."""


@dataclass(slots=True)
class WorktreeInfo:
    path: Path
    branch: str | None = None
    head: str | None = None

    @property
    def handle(self) -> str:
        """Directory basename, the short name users type on the command line."""

        return self.path.name


def parse_worktree_porcelain(output: str) -> list[WorktreeInfo]:
    """Parse ``git worktree list --porcelain``; bare entries are skipped."""

    worktrees: list[WorktreeInfo] = []
    for block in output.strip().split("\n\n"):
        fields: dict[str, str] = {}
        for line in block.splitlines():
            name, _, value = line.partition(" ")
            fields[name] = value
        if "worktree" not in fields or "bare" in fields:
            continue
        branch = fields.get("branch")
        if branch and branch.startswith(BRANCH_PREFIX):
            branch = branch[len(BRANCH_PREFIX):]
        worktrees.append(
            WorktreeInfo(
                path=canon_or_self(fields["worktree"]),
                branch=branch or None,
                head=fields.get("HEAD"),
            )
        )
    return worktrees


class GitWorktrees:
    """Worktrees of the repository containing ``cwd``."""

    def __init__(self, runner: CommandRunner | None = None, cwd: Path | None = None) -> None:
        self._runner = runner
        self._cwd = cwd

    @property
    def runner(self) -> CommandRunner:
        if self._runner is None:
            self._runner = CommandRunner("git")
        return self._runner

    def list(self) -> list[WorktreeInfo]:
        result = self.runner.run("worktree", "list", "--porcelain", cwd=self._cwd)
        if not result.ok:
            message = result.stderr.strip() or "git worktree list failed"
            raise GitError(f"Not a git repository or git failed: {message}")
        return parse_worktree_porcelain(result.stdout)

    def find(self, name: str) -> WorktreeInfo:
        """Look a worktree up by handle first, then by branch name."""

        worktrees = self.list()
        for worktree in worktrees:
            if worktree.handle == name:
                return worktree
        for worktree in worktrees:
            if worktree.branch == name:
                return worktree
        raise WorktreeNotFoundError(name)

    @staticmethod
    def match(workdir: Path | str, worktrees: list[WorktreeInfo]) -> WorktreeInfo | None:
        """Deepest worktree that equals or contains ``workdir``."""

        target = canon_or_self(workdir)
        best: WorktreeInfo | None = None
        for worktree in worktrees:
            if is_within(target, worktree.path):
                if best is None or len(worktree.path.parts) > len(best.path.parts):
                    best = worktree
        return best


__all__ = ["GitError", "GitWorktrees", "WorktreeInfo", "parse_worktree_porcelain"]
