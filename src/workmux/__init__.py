"""Agent lifecycle tracking and coordination for parallel git worktrees."""

__version__ = "0.4.0"

__all__ = ["__version__"]
