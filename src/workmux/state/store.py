"""Filesystem-backed store of agent state records."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ..config import WorkmuxSettings
from ..multiplexer.types import PaneKey
from .models import AgentStateRecord

logger = logging.getLogger(__name__)

AGENTS_DIRNAME = "agents"
RUNS_DIRNAME = "runs"


def write_atomic(path: Path, payload: str) -> None:
    """Write ``payload`` to ``path`` through a unique temp file and rename.

    Temp files are dot-prefixed and end in ``.tmp`` so directory scans for
    ``*.json`` never see them.
    """

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class StateStore:
    """One JSON file per pane under ``<base>/agents``.

    No locks are taken: writers rely on atomic rename and readers skip any
    file that fails to parse.
    """

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        self.agents_dir.mkdir(parents=True, exist_ok=True)
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: WorkmuxSettings) -> "StateStore":
        return cls(settings.state_root)

    @property
    def base_path(self) -> Path:
        return self._base_path

    @property
    def agents_dir(self) -> Path:
        return self._base_path / AGENTS_DIRNAME

    @property
    def runs_dir(self) -> Path:
        return self._base_path / RUNS_DIRNAME

    def path_for(self, key: PaneKey) -> Path:
        return self.agents_dir / key.filename()

    def write(self, record: AgentStateRecord) -> Path:
        path = self.path_for(record.pane_key)
        write_atomic(path, record.model_dump_json(indent=2))
        logger.debug(
            "Agent state written",
            extra={"pane_id": record.pane_key.pane_id, "status": record.status},
        )
        return path

    @staticmethod
    def read_file(path: Path) -> AgentStateRecord:
        """Parse one state file; raises ``OSError`` or ``ValidationError``."""

        return AgentStateRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def get(self, key: PaneKey) -> AgentStateRecord | None:
        path = self.path_for(key)
        try:
            return self.read_file(path)
        except FileNotFoundError:
            return None
        except (OSError, ValidationError) as exc:
            logger.debug("Skipping unreadable state file", extra={"path": str(path), "error": str(exc)})
            return None

    def list_all(self) -> list[AgentStateRecord]:
        records: list[AgentStateRecord] = []
        for path in sorted(self.agents_dir.glob("*.json")):
            try:
                records.append(self.read_file(path))
            except FileNotFoundError:
                # Deleted by a concurrent reconciliation.
                continue
            except (OSError, ValidationError) as exc:
                logger.debug(
                    "Skipping unreadable state file",
                    extra={"path": str(path), "error": str(exc)},
                )
        return records

    def unreadable_files(self) -> list[Path]:
        """State files that currently fail to parse."""

        broken: list[Path] = []
        for path in sorted(self.agents_dir.glob("*.json")):
            try:
                self.read_file(path)
            except FileNotFoundError:
                continue
            except (OSError, ValidationError):
                broken.append(path)
        return broken

    def delete(self, key: PaneKey) -> bool:
        """Remove the record for ``key``; ``False`` when there was none."""

        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        return True

    def find_by_workdir(self, path: Path | str) -> list[AgentStateRecord]:
        target = Path(path)
        matches: list[AgentStateRecord] = []
        for record in self.list_all():
            workdir = Path(record.workdir)
            if workdir == target or target in workdir.parents:
                matches.append(record)
        return matches


__all__ = ["AGENTS_DIRNAME", "RUNS_DIRNAME", "StateStore", "write_atomic"]
