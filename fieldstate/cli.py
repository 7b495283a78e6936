"""
Field State CLI
===============

Inspect and verify field timelines stored in a JSON-lines event store.

COMMANDS:
- check:    Verify timeline consistency (optionally repair lastState)
- state:    Print the state in effect at an instant
- timeline: Dump the derived state changes of a field

USAGE:
    fieldstate --store ./data/events [COMMAND] [ARGS]

Exit status of `check` is 0 only when every checked field is consistent.
"""
import argparse
import json
import os
import sys
from datetime import datetime
from typing import List, Optional

from .contracts.base import format_instant, parse_instant
from .contracts.errors import ConflictError, FieldStateError, StateChangeError
from .contracts.state import simplify_state
from .engine import EngineConfig, FieldStateEngine
from .storage import StoreConfig

DEFAULT_STORE = "./data/events"


def _instant(value: str) -> datetime:
    try:
        return parse_instant(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


def _build_engine(args) -> FieldStateEngine:
    config = EngineConfig.from_env()
    config.store = StoreConfig(backend_type="file", path=args.store)
    if getattr(args, "repeated", False):
        config.check.flag_repeated_states = True
    return FieldStateEngine(config)


def cmd_check(args) -> int:
    engine = _build_engine(args)
    fields = [f.strip() for f in args.field.split(",") if f.strip()] if args.field else engine.fields()
    fail_on_error = engine.config.check.fail_on_error if args.fail_on_error is None else args.fail_on_error

    if not fields:
        print("[INFO] No fields in store.")
        return 0

    failed = 0
    for field in fields:
        try:
            summary = engine.check(field, start=args.start, end=args.end,
                                   fail_on_error=fail_on_error, fix=args.fix)
        except StateChangeError as exc:
            print(f"[FAIL] {exc}")
            failed += 1
            continue
        except ConflictError as exc:
            print(f"[FAIL] {field}: {exc}")
            failed += 1
            continue

        for repair in summary.repairs:
            print(f"[FIX]  {field}: {repair.event_id} lastState -> "
                  f"{json.dumps(repair.new_last_state)}")
        if summary.ok:
            print(f"[PASS] {field}")
        else:
            failed += 1
            for error in summary.errors:
                print(f"[FAIL] {error}")

    return 0 if failed == 0 else 1


def cmd_state(args) -> int:
    engine = _build_engine(args)
    state = engine.active_state(args.field, at=args.at)
    print(json.dumps(simplify_state(state)))
    return 0


def cmd_timeline(args) -> int:
    engine = _build_engine(args)
    rows = engine.timeline(args.field, start=args.start, end=args.end)
    if not rows:
        print("No state changes.")
        return 0
    print("TIME                     | LAST -> ACTIVE | ROLE | ID")
    print("-" * 80)
    for row in rows:
        last = json.dumps(simplify_state(row.last_state))
        active = json.dumps(simplify_state(row.active_state))
        print(f"{format_instant(row.timestamp)} | {last} -> {active} | {row.role.value} | {row.id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fieldstate", description="Field state timeline tools")
    parser.add_argument("--store", default=os.environ.get("FIELDSTATE_STORE_PATH", DEFAULT_STORE),
                        help="Path to the JSON-lines event store")

    subparsers = parser.add_subparsers(dest="command")

    check_parser = subparsers.add_parser("check", help="Verify timeline consistency")
    check_parser.add_argument("--field", help="Field name, or comma-separated names (default: all)")
    check_parser.add_argument("--start", type=_instant, help="Window start (inclusive)")
    check_parser.add_argument("--end", type=_instant, help="Window end (exclusive)")
    check_parser.add_argument("--fix", action="store_true", help="Repair incorrect lastState values")
    check_parser.add_argument("--repeated", action="store_true", help="Report repeated states")
    mode = check_parser.add_mutually_exclusive_group()
    mode.add_argument("--fail-on-error", dest="fail_on_error", action="store_const", const=True,
                      help="Stop at the first error")
    mode.add_argument("--accumulate", dest="fail_on_error", action="store_const", const=False,
                      help="Collect every error in the window")
    check_parser.set_defaults(fail_on_error=None)

    state_parser = subparsers.add_parser("state", help="Show the active state of a field")
    state_parser.add_argument("field")
    state_parser.add_argument("--at", type=_instant, help="Instant to inspect (default: latest)")

    timeline_parser = subparsers.add_parser("timeline", help="Dump derived state changes")
    timeline_parser.add_argument("field")
    timeline_parser.add_argument("--start", type=_instant)
    timeline_parser.add_argument("--end", type=_instant)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "check": cmd_check,
        "state": cmd_state,
        "timeline": cmd_timeline,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 2

    try:
        return command(args)
    except (FieldStateError, ValueError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
