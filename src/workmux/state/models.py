"""Persistent agent state records and their reconciled view."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from ..multiplexer.types import PaneKey


class AgentStatus(str, Enum):
    """Statuses reported by agent hooks and accepted by ``wait``."""

    WORKING = "working"
    WAITING = "waiting"
    DONE = "done"
    IDLE = "idle"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def parse(cls, value: str) -> "AgentStatus":
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Invalid status '{value}'; expected one of {', '.join(cls.values())}"
            ) from None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AgentStateRecord(BaseModel):
    """Last known state of the agent running in one pane."""

    pane_key: PaneKey
    pane_pid: int = Field(..., gt=0, description="Process occupying the pane at last update.")
    command: str = Field(..., description="Foreground command observed at last update.")
    workdir: str = Field(..., min_length=1, description="Working directory of the agent.")
    status: str | None = Field(default=None, description="Open-ended status string.")
    pane_title: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("updated_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def elapsed_secs(self, now: datetime | None = None) -> int:
        """Whole seconds since the last update, never negative."""

        reference = now or utc_now()
        return max(0, int((reference - self.updated_at).total_seconds()))


@dataclass(slots=True)
class ReconciledAgent:
    """A live agent record joined with the worktree it works in."""

    state: AgentStateRecord
    worktree: str
    branch: str | None = None
    live: bool = True

    @property
    def pane_id(self) -> str:
        return self.state.pane_key.pane_id

    @property
    def status(self) -> str | None:
        return self.state.status


__all__ = ["AgentStateRecord", "AgentStatus", "ReconciledAgent", "utc_now"]
