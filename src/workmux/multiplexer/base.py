"""Capability interface implemented by every multiplexer backend."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Sequence

from .types import BackendKind, LivePane, PaneKey

logger = logging.getLogger(__name__)


class MultiplexerBackend:
    """Answer pane questions for one multiplexer server instance.

    Query methods never raise for panes that have disappeared; they report
    "not found" (``False``/``None``) so callers can treat a vanished pane as
    an ordinary reconciliation outcome.
    """

    kind: BackendKind

    def __init__(self, env: Mapping[str, str]) -> None:
        self._env = dict(env)

    @property
    def instance(self) -> str:
        raise NotImplementedError

    def owns(self, key: PaneKey) -> bool:
        """Whether ``key`` belongs to this backend's server instance."""

        return key.backend == self.kind and key.instance == self.instance

    def key_for(self, pane_id: str) -> PaneKey:
        return PaneKey(backend=self.kind, instance=self.instance, pane_id=pane_id)

    def current_pane_id(self) -> str | None:
        """Pane id of the pane this process runs in, if any."""

        raise NotImplementedError

    def current_pane_key(self) -> PaneKey | None:
        pane_id = self.current_pane_id()
        if not pane_id:
            return None
        return self.key_for(pane_id)

    def live_panes(self) -> dict[str, LivePane]:
        """Every pane of this instance, keyed by pane id, in one query."""

        raise NotImplementedError

    def describe_pane(self, key: PaneKey) -> LivePane | None:
        if not self.owns(key):
            return None
        return self.live_panes().get(key.pane_id)

    def pane_exists(self, key: PaneKey) -> bool:
        return self.describe_pane(key) is not None

    def pane_pid(self, key: PaneKey) -> int | None:
        pane = self.describe_pane(key)
        return pane.pid if pane is not None else None

    def pane_current_command(self, key: PaneKey) -> str | None:
        pane = self.describe_pane(key)
        return pane.current_command if pane is not None else None

    def capture_pane_text(self, key: PaneKey, max_lines: int) -> str | None:
        raise NotImplementedError

    def send_text(self, key: PaneKey, text: str) -> bool:
        raise NotImplementedError

    def split_pane(
        self,
        key: PaneKey,
        cwd: Path,
        argv: Sequence[str],
        *,
        percent: int = 30,
    ) -> str | None:
        """Split ``key``'s window and run ``argv`` in the new pane."""

        raise NotImplementedError

    def set_status(self, key: PaneKey, icon: str) -> None:
        logger.debug("Status icons unsupported", extra={"backend": self.kind.value})

    def clear_status(self, key: PaneKey) -> None:
        logger.debug("Status icons unsupported", extra={"backend": self.kind.value})


__all__ = ["MultiplexerBackend"]
