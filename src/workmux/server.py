"""FastMCP server exposing coordinator commands to MCP clients."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from . import __version__
from .cli import configure_logging
from .config import WorkmuxSettings, get_settings
from .coordinator import Coordinator, capture_worktree, send_to_worktree, status_rows
from .errors import WorkmuxError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    list_agents: Any
    send_to_agent: Any
    capture_agent: Any


def register_tools(server: FastMCP, *, coordinator: Coordinator) -> ToolHandles:
    """Register the agent coordination tools on ``server``."""

    def _list_agents(filter: str | None = None) -> list[dict[str, Any]]:
        try:
            rows = status_rows(coordinator, filter)
        except WorkmuxError as exc:
            raise ToolError(str(exc)) from exc
        logger.debug("Listing agents", extra={"count": len(rows), "filter": filter})
        return rows

    def _send_to_agent(worktree: str, text: str) -> dict[str, Any]:
        try:
            agent = send_to_worktree(coordinator, worktree, text)
        except WorkmuxError as exc:
            raise ToolError(str(exc)) from exc
        logger.info("Sent text to agent", extra={"worktree": worktree, "pane_id": agent.pane_id})
        return {"worktree": worktree, "pane_id": agent.pane_id, "delivered": True}

    def _capture_agent(worktree: str, lines: int | None = None) -> dict[str, Any]:
        if lines is not None and lines < 1:
            raise ToolError("lines must be at least 1")
        try:
            text = capture_worktree(coordinator, worktree, lines)
        except WorkmuxError as exc:
            raise ToolError(str(exc)) from exc
        return {"worktree": worktree, "text": text}

    tool_list = server.tool(
        name="list_agents",
        description=(
            "List live coding agents with their worktree, branch, status and pane. "
            "Optionally filter by worktree handle or branch name."
        ),
    )(_list_agents)

    tool_send = server.tool(
        name="send_to_agent",
        description="Type text into the agent pane of a worktree and press Enter.",
    )(_send_to_agent)

    tool_capture = server.tool(
        name="capture_agent",
        description="Return the recent output of a worktree's agent pane with escape codes removed.",
    )(_capture_agent)

    return ToolHandles(list_agents=tool_list, send_to_agent=tool_send, capture_agent=tool_capture)


def status_payload(settings: WorkmuxSettings, coordinator: Coordinator) -> dict[str, Any]:
    try:
        agents = status_rows(coordinator)
        error: str | None = None
    except WorkmuxError as exc:
        agents = []
        error = str(exc)

    status_counts: dict[str, int] = {}
    for row in agents:
        status = row.get("status") or "unknown"
        status_counts[status] = status_counts.get(status, 0) + 1

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server_version": __version__,
        "log_level": settings.log_level,
        "backend": {
            "kind": coordinator.backend.kind.value,
            "instance": coordinator.backend.instance,
        },
        "state_root": str(coordinator.store.base_path),
        "agents": {
            "count": len(agents),
            "status_counts": status_counts,
            "items": agents,
            "error": error,
        },
    }


def create_server(
    settings: WorkmuxSettings | None = None,
    coordinator: Coordinator | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server with the coordination tools."""

    settings = settings or get_settings()
    coordinator = coordinator or Coordinator.from_settings(settings)

    server = FastMCP(
        name="workmux",
        version=__version__,
        instructions=(
            "workmux tracks coding agents running in tmux or WezTerm panes, one per "
            "git worktree. Use the tools to list agents, send them input and read "
            "their recent output."
        ),
    )

    handles = register_tools(server, coordinator=coordinator)

    @server.resource(
        "resource://workmux/status",
        name="workmux_status",
        description="Live agents and backend details as JSON.",
        mime_type="application/json",
    )
    def status_resource() -> str:
        return json.dumps(status_payload(settings, coordinator))

    setattr(server, "coordinator", coordinator)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the workmux MCP server."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching workmux MCP server",
        extra={"version": __version__, "log_level": settings.log_level},
    )
    server.run()


if __name__ == "__main__":
    main()
