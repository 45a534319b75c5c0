"""workmux diagnostics CLI."""

from __future__ import annotations

import argparse
import json
import time

from workmux.config import WorkmuxSettings
from workmux.state.runs import RunInfo, cleanup_run, list_runs
from workmux.state.store import StateStore

DEFAULT_PRUNE_HOURS = 24.0


def load_store(settings: WorkmuxSettings) -> StateStore:
    return StateStore.from_settings(settings)


def cmd_agents(args: argparse.Namespace) -> None:
    store = load_store(WorkmuxSettings())
    records = [record.model_dump(mode="json") for record in store.list_all()]
    unreadable = [str(path) for path in store.unreadable_files()]
    if args.json:
        print(json.dumps({"agents": records, "unreadable": unreadable}, indent=2))
        return
    for record in records:
        key = record["pane_key"]
        print(
            f"{key['backend']}:{key['pane_id']} [{record['status'] or '-'}] "
            f"pid={record['pane_pid']} cmd={record['command']} -> {record['workdir']}"
        )
    for path in unreadable:
        print(f"unreadable: {path}")


def cmd_runs(args: argparse.Namespace) -> None:
    store = load_store(WorkmuxSettings())
    payload = []
    for info in list_runs(store.runs_dir):
        payload.append(
            {
                "run_id": info.run_id,
                "path": str(info.path),
                "command": info.spec.command if info.spec else None,
                "completed": info.result is not None,
                "exit_status": info.result.exit_status() if info.result else None,
                "age_secs": int(time.time() - info.modified),
            }
        )
    print(json.dumps(payload, indent=2))


def _is_stale(info: RunInfo, cutoff: float, now: float) -> bool:
    if info.modified > cutoff:
        return False
    if info.result is None and info.spec is not None and info.spec.timeout is not None:
        # Still running, or its helper may yet write a result.
        return now - info.modified > info.spec.timeout
    return True


def cmd_prune_runs(args: argparse.Namespace) -> None:
    store = load_store(WorkmuxSettings())
    now = time.time()
    cutoff = now - args.older_than * 3600
    removed = []
    for info in list_runs(store.runs_dir):
        if _is_stale(info, cutoff, now):
            cleanup_run(info.path)
            removed.append(info.run_id)
    print(json.dumps({"removed": removed}, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="workmux diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_agents = sub.add_parser("agents", help="List raw agent state records")
    p_agents.add_argument("--json", action="store_true", help="Output JSON")
    p_agents.set_defaults(func=cmd_agents)

    p_runs = sub.add_parser("runs", help="List leftover run artifact directories")
    p_runs.set_defaults(func=cmd_runs)

    p_prune = sub.add_parser("prune-runs", help="Remove leftover run artifact directories")
    p_prune.add_argument(
        "--older-than",
        type=float,
        default=DEFAULT_PRUNE_HOURS,
        help=f"Only remove runs untouched for this many hours (default {DEFAULT_PRUNE_HOURS:g})",
    )
    p_prune.set_defaults(func=cmd_prune_runs)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
