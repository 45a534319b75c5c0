"""Command-line entry point for the workmux coordinator commands."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from . import __version__
from .config import WorkmuxSettings, get_settings
from .coordinator import (
    Coordinator,
    capture_worktree,
    execute_run,
    render_table,
    run_in_worktree,
    send_to_worktree,
    set_window_status,
    status_rows,
    wait_for_status,
)
from .coordinator.wait import WaitOutcome
from .coordinator.window_status import CLEAR
from .errors import InvalidArgumentError, WorkmuxError
from .state.models import AgentStatus

logger = logging.getLogger(__name__)

VISIBLE_COMMANDS = "{set-window-status,status,wait,send,capture,run}"


def configure_logging(level: str) -> None:
    """Configure root logging for workmux commands."""

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_coordinator(settings: WorkmuxSettings) -> Coordinator:
    return Coordinator.from_settings(settings)


def parse_statuses(value: str) -> list[str]:
    statuses: list[str] = []
    for item in value.split(","):
        try:
            statuses.append(AgentStatus.parse(item).value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from None
    return statuses


def positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return number


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def cmd_set_window_status(args: argparse.Namespace, coordinator: Coordinator) -> int:
    set_window_status(coordinator, args.status)
    return 0


def cmd_status(args: argparse.Namespace, coordinator: Coordinator) -> int:
    rows = status_rows(coordinator, args.filter)
    if args.json:
        print(json.dumps(rows, indent=2))
    else:
        print(render_table(rows))
    return 0


def cmd_wait(args: argparse.Namespace, coordinator: Coordinator) -> int:
    result = wait_for_status(coordinator, args.worktree, args.status, timeout=args.timeout)
    if result.outcome is WaitOutcome.TIMED_OUT:
        current = result.status or "unknown"
        print(
            f"Timeout waiting for '{args.worktree}' to reach {','.join(args.status)} "
            f"(current status: {current})",
            file=sys.stderr,
        )
    return result.exit_code


def cmd_send(args: argparse.Namespace, coordinator: Coordinator) -> int:
    if args.file is not None:
        try:
            text = args.file.read_text(encoding="utf-8")
        except OSError as exc:
            raise WorkmuxError(f"Cannot read {args.file}: {exc.strerror or exc}") from exc
    else:
        text = args.text
    send_to_worktree(coordinator, args.worktree, text)
    return 0


def cmd_capture(args: argparse.Namespace, coordinator: Coordinator) -> int:
    print(capture_worktree(coordinator, args.worktree, args.lines))
    return 0


def cmd_run(args: argparse.Namespace, coordinator: Coordinator) -> int:
    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        raise InvalidArgumentError("No command provided")

    def announce(run_dir: Path) -> None:
        print(f"Artifacts: {run_dir}", file=sys.stderr, flush=True)

    outcome = run_in_worktree(
        coordinator,
        args.worktree,
        command,
        timeout=args.timeout,
        keep=args.keep,
        on_started=announce,
    )
    if outcome.timed_out:
        limit = args.timeout if args.timeout is not None else coordinator.settings.run_timeout
        print(f"Timeout after {limit:g}s", file=sys.stderr)
    else:
        sys.stdout.write(outcome.stdout)
        sys.stdout.flush()
        sys.stderr.write(outcome.stderr)
        sys.stderr.flush()
    if outcome.kept:
        print(f"Artifacts kept at: {outcome.run_dir}", file=sys.stderr)
    return outcome.exit_code


def cmd_exec(args: argparse.Namespace) -> int:
    return execute_run(args.run_dir)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workmux",
        description="Coordinate coding agents running in multiplexer panes",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug)",
    )
    sub = parser.add_subparsers(dest="cmd", metavar=VISIBLE_COMMANDS)

    p_set = sub.add_parser(
        "set-window-status",
        help="Record the calling pane's agent status (used by agent hooks)",
    )
    p_set.add_argument("status", choices=[*AgentStatus.values(), CLEAR])
    p_set.set_defaults(func=cmd_set_window_status)

    p_status = sub.add_parser("status", help="Show live agents")
    p_status.add_argument("filter", nargs="?", help="Worktree handle or branch to filter by")
    p_status.add_argument("--json", action="store_true", help="Output JSON")
    p_status.set_defaults(func=cmd_status)

    p_wait = sub.add_parser("wait", help="Wait until an agent reaches a status")
    p_wait.add_argument("worktree")
    p_wait.add_argument(
        "--status",
        type=parse_statuses,
        default=[AgentStatus.DONE.value],
        help="Target status, or several separated by commas (default: done)",
    )
    p_wait.add_argument("--timeout", type=positive_float, default=None, help="Seconds to wait")
    p_wait.set_defaults(func=cmd_wait)

    p_send = sub.add_parser("send", help="Send text to an agent")
    p_send.add_argument("worktree")
    source = p_send.add_mutually_exclusive_group(required=True)
    source.add_argument("text", nargs="?", help="Text to send")
    source.add_argument("--file", type=Path, help="Send the contents of a file")
    p_send.set_defaults(func=cmd_send)

    p_capture = sub.add_parser("capture", help="Print the agent pane's recent output")
    p_capture.add_argument("worktree")
    p_capture.add_argument("-n", "--lines", type=positive_int, default=None, help="Lines to capture")
    p_capture.set_defaults(func=cmd_capture)

    p_run = sub.add_parser("run", help="Run a command in a pane next to the agent")
    p_run.add_argument("worktree")
    p_run.add_argument("--timeout", type=positive_float, default=None, help="Seconds to wait")
    p_run.add_argument("--keep", action="store_true", help="Keep the run artifacts")
    p_run.add_argument("command", nargs="+", help="Command to run (after --)")
    p_run.set_defaults(func=cmd_run)

    p_exec = sub.add_parser("_exec")
    p_exec.add_argument("--run-dir", type=Path, required=True)
    p_exec.set_defaults(func=cmd_exec, standalone=True)

    return parser


def _log_level(settings: WorkmuxSettings | None, verbose: int) -> str:
    if verbose >= 2:
        return "DEBUG"
    if verbose == 1:
        return "INFO"
    return settings.log_level if settings is not None else "WARNING"


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 0

    try:
        settings = get_settings()
    except ValidationError as exc:
        configure_logging(_log_level(None, args.verbose))
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        return 1
    configure_logging(_log_level(settings, args.verbose))

    try:
        if getattr(args, "standalone", False):
            return args.func(args)
        return args.func(args, build_coordinator(settings))
    except WorkmuxError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
