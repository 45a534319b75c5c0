"""``set-window-status``: record an agent's status from inside its pane."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import psutil

from ..config import ConfigLoadError
from ..state.models import AgentStateRecord
from ..util import canon_or_self
from .context import Coordinator

logger = logging.getLogger(__name__)

CLEAR = "clear"


def _parent_process() -> tuple[int, str]:
    parent = os.getppid()
    try:
        return parent, psutil.Process(parent).name()
    except psutil.Error:
        return parent, ""


def set_window_status(coordinator: Coordinator, status: str) -> AgentStateRecord | None:
    """Upsert the record for the current pane, or delete it for ``clear``.

    Outside a multiplexer pane this is a silent no-op so agent hooks can call
    it unconditionally.
    """

    backend = coordinator.backend
    key = backend.current_pane_key()
    if key is None:
        logger.debug("Not inside a multiplexer pane; ignoring status update")
        return None

    if status == CLEAR:
        coordinator.store.delete(key)
        backend.clear_status(key)
        return None

    pane = backend.describe_pane(key)
    if pane is not None and pane.pid > 0:
        pid, command, title = pane.pid, pane.current_command, pane.title
    else:
        pid, command = _parent_process()
        title = None
    if not command:
        command = _parent_process()[1]

    record = AgentStateRecord(
        pane_key=key,
        pane_pid=pid,
        command=command,
        workdir=str(canon_or_self(coordinator.cwd or Path.cwd())),
        status=status,
        pane_title=title,
        updated_at=coordinator.now(),
    )
    try:
        config = coordinator.load_config()
    except ConfigLoadError as exc:
        logger.warning("Ignoring unreadable config; status icon not updated", extra={"error": str(exc)})
        config = None
    coordinator.store.write(record)

    if config is not None and config.status_format:
        icon = config.status_icons.for_status(status)
        if icon:
            backend.set_status(key, icon)
    return record


__all__ = ["CLEAR", "set_window_status"]
