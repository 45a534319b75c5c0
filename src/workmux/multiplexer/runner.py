"""Synchronous runner for multiplexer and git command-line tools."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Mapping

from ..errors import WorkmuxError
from .utils import sanitize_environment

DEFAULT_CALL_TIMEOUT = 10.0


class CommandRunnerError(WorkmuxError):
    """Base class for command runner errors."""


class CommandNotFoundError(CommandRunnerError):
    """Raised when a required executable cannot be located."""


@dataclass(slots=True)
class CommandResult:
    """Holds the outcome of a single CLI invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Execute one command-line tool and capture its output."""

    def __init__(
        self,
        name: str,
        executable: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self._name = name
        self._executable_path = self._resolve_executable(name, executable)
        self._env = dict(env) if env is not None else None
        self._timeout = timeout

    @staticmethod
    def _resolve_executable(name: str, explicit: Path | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            raise CommandNotFoundError(f"{name} executable not found at {candidate}")

        binary = shutil.which(name)
        if binary is None:
            raise CommandNotFoundError(f"{name} executable not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    def run(
        self,
        *args: str,
        input: str | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        cmd = [str(self._executable_path), *args]
        try:
            completed = subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=str(cwd) if cwd is not None else None,
                env=self._env if self._env is not None else sanitize_environment(),
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandRunnerError(
                f"{self._name} did not respond within {self._timeout:g}s"
            ) from exc
        return CommandResult(
            args=tuple(cmd),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )


Responder = Callable[[tuple[str, ...]], CommandResult]


class FakeCommandRunner(CommandRunner):
    """Test double that replays scripted command results.

    ``responses`` are consumed in order; a ``responder`` callable is consulted
    instead when provided. Unscripted calls succeed with empty output.
    """

    def __init__(  # type: ignore[override]
        self,
        responses: Iterable[CommandResult] | None = None,
        *,
        responder: Responder | None = None,
        name: str = "fake",
    ) -> None:
        self._name = name
        self._responses = list(responses or [])
        self._responder = responder
        self._invocations: list[tuple[str, ...]] = []
        self._inputs: list[str | None] = []
        self._executable_path = Path(f"/tmp/fake-{name}")

    def run(  # type: ignore[override]
        self,
        *args: str,
        input: str | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        self._invocations.append(tuple(args))
        self._inputs.append(input)
        if self._responder is not None:
            return self._responder(tuple(args))
        if self._responses:
            return self._responses.pop(0)
        return CommandResult(args=tuple(args), returncode=0, stdout="", stderr="")

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    @property
    def inputs(self) -> list[str | None]:
        return self._inputs


__all__ = [
    "CommandNotFoundError",
    "CommandResult",
    "CommandRunner",
    "CommandRunnerError",
    "FakeCommandRunner",
]
