"""``wait``: block until an agent reaches one of the target statuses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ..errors import NoAgentError
from .context import Coordinator

logger = logging.getLogger(__name__)


class WaitOutcome(str, Enum):
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"


@dataclass(slots=True)
class WaitResult:
    outcome: WaitOutcome
    status: str | None
    elapsed: float

    @property
    def exit_code(self) -> int:
        return 0 if self.outcome is WaitOutcome.SATISFIED else 1


def wait_for_status(
    coordinator: Coordinator,
    name: str,
    statuses: Iterable[str],
    *,
    timeout: float | None = None,
) -> WaitResult:
    """Poll until any live agent of ``name`` has one of ``statuses``.

    The check runs once before any sleeping, so an agent already in a target
    status returns immediately.
    """

    targets = set(statuses)
    limit = coordinator.settings.wait_timeout if timeout is None else timeout
    interval = coordinator.settings.poll_interval
    worktree = coordinator.resolve_worktree(name)

    started = coordinator.clock()
    deadline = started + limit
    polls = 0
    while True:
        agents = coordinator.agents_in(worktree)
        if not agents:
            raise NoAgentError(name, "agent exited while waiting" if polls else None)
        for agent in agents:
            if agent.status in targets:
                return WaitResult(WaitOutcome.SATISFIED, agent.status, coordinator.clock() - started)

        remaining = deadline - coordinator.clock()
        if remaining <= 0:
            logger.info("Wait timed out", extra={"worktree": name, "statuses": sorted(targets)})
            return WaitResult(WaitOutcome.TIMED_OUT, agents[0].status, coordinator.clock() - started)
        coordinator.sleep(min(interval, remaining))
        polls += 1


__all__ = ["WaitOutcome", "WaitResult", "wait_for_status"]
