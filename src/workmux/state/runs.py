"""Artifact directories exchanged between ``run`` and its ``_exec`` helper.

Each run lives in ``<state>/runs/<run-id>/`` and holds ``spec.json`` (what to
execute), the captured ``stdout``/``stderr`` streams and, once the command has
finished, ``result.json``.
"""

from __future__ import annotations

import os
import re
import shutil
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ..errors import WorkmuxError
from .models import utc_now
from .store import write_atomic

SPEC_FILENAME = "spec.json"
RESULT_FILENAME = "result.json"
STDOUT_FILENAME = "stdout"
STDERR_FILENAME = "stderr"

_RUN_ID_RE = re.compile(r"^[A-Za-z0-9-]+$")


class RunArtifactError(WorkmuxError):
    """Raised when a run directory is missing or holds invalid files."""


class RunSpec(BaseModel):
    """Command the ``_exec`` helper should execute."""

    command: list[str] = Field(..., min_length=1)
    worktree_path: str
    timeout: float | None = None
    created_at: datetime = Field(default_factory=utc_now)


class RunResult(BaseModel):
    """Outcome written by the ``_exec`` helper once the command exits."""

    exit_code: int | None = None
    signal: int | None = None
    stdout_path: str | None = None
    stderr_path: str | None = None
    finished_at: datetime = Field(default_factory=utc_now)

    def exit_status(self) -> int:
        """Shell-style status: the exit code, or ``128 + signal``."""

        if self.exit_code is not None:
            return self.exit_code
        if self.signal is not None:
            return 128 + self.signal
        return 1


@dataclass(slots=True)
class RunInfo:
    run_id: str
    path: Path
    spec: RunSpec | None
    result: RunResult | None
    modified: float


def generate_run_id() -> str:
    return f"{int(time.time() * 1000):x}-{os.getpid()}"


def validate_run_id(run_id: str) -> str:
    if not _RUN_ID_RE.match(run_id):
        raise RunArtifactError(
            f"Invalid run id '{run_id}': must be alphanumeric with hyphens"
        )
    return run_id


def create_run(runs_dir: Path, run_id: str, spec: RunSpec) -> Path:
    """Create the run directory with its spec and empty output files."""

    validate_run_id(run_id)
    run_dir = Path(runs_dir) / run_id
    try:
        run_dir.mkdir(parents=True, exist_ok=False)
    except FileExistsError as exc:
        raise RunArtifactError(f"Run directory already exists: {run_dir}") from exc
    write_atomic(run_dir / SPEC_FILENAME, spec.model_dump_json(indent=2))
    (run_dir / STDOUT_FILENAME).write_bytes(b"")
    (run_dir / STDERR_FILENAME).write_bytes(b"")
    return run_dir.resolve()


def read_spec(run_dir: Path) -> RunSpec:
    path = Path(run_dir) / SPEC_FILENAME
    try:
        return RunSpec.model_validate_json(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise RunArtifactError(f"Run spec not found: {path}") from exc
    except (OSError, ValidationError) as exc:
        raise RunArtifactError(f"Failed to read run spec {path}: {exc}") from exc


def read_result(run_dir: Path) -> RunResult | None:
    """Return the result once it has been completely written."""

    path = Path(run_dir) / RESULT_FILENAME
    try:
        return RunResult.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError):
        return None


def write_result(run_dir: Path, result: RunResult) -> Path:
    path = Path(run_dir) / RESULT_FILENAME
    write_atomic(path, result.model_dump_json(indent=2))
    return path


def cleanup_run(run_dir: Path) -> None:
    shutil.rmtree(run_dir, ignore_errors=True)


def list_runs(runs_dir: Path) -> list[RunInfo]:
    """Every run directory under ``runs_dir``, oldest first."""

    runs: list[RunInfo] = []
    root = Path(runs_dir)
    if not root.is_dir():
        return runs
    for entry in root.iterdir():
        if not entry.is_dir() or not _RUN_ID_RE.match(entry.name):
            continue
        try:
            spec: RunSpec | None = read_spec(entry)
        except RunArtifactError:
            spec = None
        try:
            modified = entry.stat().st_mtime
        except FileNotFoundError:
            continue
        runs.append(
            RunInfo(
                run_id=entry.name,
                path=entry,
                spec=spec,
                result=read_result(entry),
                modified=modified,
            )
        )
    runs.sort(key=lambda info: (info.modified, info.run_id))
    return runs


__all__ = [
    "RESULT_FILENAME",
    "SPEC_FILENAME",
    "STDERR_FILENAME",
    "STDOUT_FILENAME",
    "RunArtifactError",
    "RunInfo",
    "RunResult",
    "RunSpec",
    "cleanup_run",
    "create_run",
    "generate_run_id",
    "list_runs",
    "read_result",
    "read_spec",
    "validate_run_id",
    "write_result",
]
