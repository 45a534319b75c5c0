"""Terminal multiplexer backends behind one capability interface."""

from __future__ import annotations

from typing import Mapping

from .base import MultiplexerBackend
from .runner import CommandNotFoundError, CommandResult, CommandRunner, CommandRunnerError
from .tmux import TmuxBackend
from .types import BackendKind, LivePane, PaneKey
from .wezterm import WezTermBackend


def detect_backend(
    env: Mapping[str, str], override: BackendKind | str | None = None
) -> BackendKind:
    """Pick the backend: explicit override, then the enclosing multiplexer."""

    if override:
        return BackendKind(str(getattr(override, "value", override)).lower())
    if env.get("TMUX"):
        return BackendKind.TMUX
    if env.get("WEZTERM_PANE"):
        return BackendKind.WEZTERM
    return BackendKind.TMUX


def create_backend(
    kind: BackendKind,
    runner: CommandRunner | None = None,
    env: Mapping[str, str] | None = None,
) -> MultiplexerBackend:
    if kind is BackendKind.TMUX:
        return TmuxBackend(env=env, runner=runner)
    if kind is BackendKind.WEZTERM:
        return WezTermBackend(env=env, runner=runner)
    raise ValueError(f"Unsupported backend: {kind}")


__all__ = [
    "BackendKind",
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "CommandRunnerError",
    "LivePane",
    "MultiplexerBackend",
    "PaneKey",
    "TmuxBackend",
    "WezTermBackend",
    "create_backend",
    "detect_backend",
]
