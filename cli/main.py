#!/usr/bin/env python3
"""
Freetime OS CLI - Direct access to the gap inventory.

The user is taken from FREETIME_DEFAULT_USER (default "local").
"""

import sys
from datetime import date
from pathlib import Path

from freetime import config
from freetime.gap_truth import GapError, GapManager, load_default_preferences, to_minutes
from freetime.gap_truth.time_math import format_span
from freetime.observability import configure_logging


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def _day(args, index: int = 0) -> date:
    return date.fromisoformat(args[index]) if len(args) > index else date.today()


def _user() -> str:
    return config.DEFAULT_USER_ID


def _print_gaps(gaps):
    if not gaps:
        print("No gaps.")
        return
    rows = [
        [g.id, g.date.isoformat(), format_span(g.start_time, g.end_time), g.duration_minutes, g.modified_by]
        for g in gaps
    ]
    print_table(["ID", "DATE", "SPAN", "MIN", "BY"], rows)


def cmd_init_day(args):
    """Generate gaps for one date."""
    day = _day(args)
    gaps = GapManager().initialize_day(_user(), day, load_default_preferences())
    print_header(f"GAPS: {day}")
    _print_gaps(gaps)


def cmd_list(args):
    """List stored gaps, optionally for one date."""
    day = date.fromisoformat(args[0]) if args else None
    gaps = GapManager().list_gaps(_user(), day)
    print_header(f"GAPS: {day or 'all dates'}")
    _print_gaps(gaps)


def cmd_window(args):
    """Fill the rolling window (add --preload for the days after it)."""
    preload = "--preload" in args
    positional = [a for a in args if not a.startswith("--")]
    today = _day(positional)
    created = GapManager().ensure_window(_user(), load_default_preferences(), today, include_preload=preload)
    print(f"✅ Window around {today}: {len(created)} gaps created over {len({g.date for g in created})} dates")


def cmd_prune(args):
    """Delete gaps older than the window."""
    today = _day(args)
    result = GapManager().prune_window(_user(), today)
    print(f"🧹 Pruned {result['deleted']} gaps from {len(result['dates'])} dates before the window")


def cmd_schedule(args):
    """Schedule a task into a gap."""
    if len(args) < 3:
        print("Usage: schedule <gap_id> <HH:MM start> <HH:MM end> [title]")
        return

    gap_id, start, end = args[0], to_minutes(args[1]), to_minutes(args[2])
    payload = {"title": " ".join(args[3:])} if len(args) > 3 else {}
    result = GapManager().schedule_task(_user(), gap_id, start, end, payload)

    print(f"✅ Scheduled {result.task.title} ({result.task.id}) at {format_span(start, end)}")
    print_header("REMAINING GAPS")
    _print_gaps(result.remainder_gaps)


def cmd_reconcile(args):
    """Apply a change between two preference files."""
    if len(args) < 2:
        print("Usage: reconcile <old_prefs.yaml> <new_prefs.yaml> [today]")
        return

    old_path, new_path = Path(args[0]), Path(args[1])
    for path in (old_path, new_path):
        if not path.exists():
            print(f"Preferences file not found: {path}")
            return

    old_prefs = load_default_preferences(old_path)
    new_prefs = load_default_preferences(new_path)
    counts = GapManager().reconcile_preference_change(_user(), old_prefs, new_prefs, today=_day(args, 2))
    print_header("RECONCILED")
    print_table(["CREATED", "DELETED", "UPDATED"], [[counts["created"], counts["deleted"], counts["updated"]]])


def cmd_check(args):
    """Run the invariant checker over stored gaps."""
    day = date.fromisoformat(args[0]) if args else None
    violations = GapManager().validate_day(_user(), day)
    if not violations:
        print(f"✅ No violations ({day or 'all dates'})")
        return
    print_header(f"{len(violations)} VIOLATIONS")
    for v in violations:
        print(f"  ❌ {v.describe()}")


def cmd_help(args):
    """Show help."""
    print_header("FREETIME OS CLI")
    print("""
COMMANDS:

  init-day [date]              Generate gaps for a date (default today)
  list [date]                  List gaps (all dates if omitted)
  window [today] [--preload]   Fill missing days of the rolling window
  prune [today]                Delete gaps older than the window
  schedule <gap> <s> <e> [t]   Schedule task t from s to e (HH:MM) into a gap
  reconcile <old> <new> [day]  Apply a work-preference change (YAML files)
  check [date]                 Check stored gaps for overlaps/bad durations
  help                         Show this help

Dates are YYYY-MM-DD. The user is $FREETIME_DEFAULT_USER.
""")


COMMANDS = {
    "init-day": cmd_init_day,
    "list": cmd_list,
    "ls": cmd_list,
    "window": cmd_window,
    "prune": cmd_prune,
    "schedule": cmd_schedule,
    "reconcile": cmd_reconcile,
    "check": cmd_check,
    "help": cmd_help,
    "h": cmd_help,
}


def main():
    """Main entry point."""
    configure_logging(config.LOG_LEVEL, json_format=config.LOG_FORMAT == "json")

    if len(sys.argv) < 2:
        cmd_help([])
        return

    cmd = sys.argv[1]
    args = sys.argv[2:]

    if cmd not in COMMANDS:
        print(f"Unknown command: {cmd}")
        print("Run 'help' for available commands.")
        return

    try:
        COMMANDS[cmd](args)
    except GapError as e:
        print(f"❌ {e.message}")
        sys.exit(1)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
