"""Identity types shared by the multiplexer backends and the state store."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BackendKind(str, Enum):
    """Closed set of supported terminal multiplexers."""

    TMUX = "tmux"
    WEZTERM = "wezterm"


class PaneKey(BaseModel):
    """Globally unique identity of a multiplexer pane.

    Combines backend, server instance and pane id so that panes from several
    concurrently running multiplexer servers never collide.
    """

    model_config = ConfigDict(frozen=True)

    backend: BackendKind = Field(..., description="Multiplexer that owns the pane.")
    instance: str = Field(..., description="Server instance (socket path or 'default').")
    pane_id: str = Field(..., description="Pane identifier within the instance.")

    @field_validator("instance", "pane_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Pane key fields must not be empty")
        return value

    def filename(self) -> str:
        """Deterministic state file name for this pane.

        The digest covers every field, so equal keys always map to the same
        file and socket paths never leak path separators into the name.
        """

        canonical = json.dumps(
            [self.backend.value, self.instance, self.pane_id], separators=(",", ":")
        )
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]
        return f"{self.backend.value}__{digest}.json"


@dataclass(slots=True)
class LivePane:
    """Snapshot of a pane as currently reported by the multiplexer."""

    pane_id: str
    pid: int
    current_command: str
    session: str | None = None
    window: str | None = None
    title: str | None = None
    current_path: str | None = None


__all__ = ["BackendKind", "LivePane", "PaneKey"]
