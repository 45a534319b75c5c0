"""Error taxonomy shared by the coordinator commands."""

from __future__ import annotations


class WorkmuxError(RuntimeError):
    """Base class for failures reported to the user without a traceback."""


class WorktreeNotFoundError(WorkmuxError):
    """Raised when a worktree name does not resolve to a known worktree."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Worktree '{name}' not found")
        self.name = name


class NoAgentError(WorkmuxError):
    """Raised when a worktree resolves but no live agent pane belongs to it."""

    def __init__(self, name: str, detail: str | None = None) -> None:
        message = f"No agent running in worktree '{name}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.name = name


class InvalidArgumentError(WorkmuxError):
    """Raised for malformed or conflicting command arguments."""


__all__ = [
    "InvalidArgumentError",
    "NoAgentError",
    "WorkmuxError",
    "WorktreeNotFoundError",
]
