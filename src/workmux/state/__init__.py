"""Persistent agent state and run artifacts."""

from .models import AgentStateRecord, AgentStatus, ReconciledAgent
from .runs import RunArtifactError, RunResult, RunSpec
from .store import StateStore

__all__ = [
    "AgentStateRecord",
    "AgentStatus",
    "ReconciledAgent",
    "RunArtifactError",
    "RunResult",
    "RunSpec",
    "StateStore",
]
