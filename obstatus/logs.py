"""Journal log retrieval.

Builds ``journalctl`` argument lists from a closed set of named filters and
priorities, optionally runs them through ``pkexec``, and classifies what came
back so callers can tell a permission problem or a dismissed password prompt
from a real error.

Usage:
    obstatus-logs
    obstatus-logs --filter kernel --priority err
    obstatus-logs --user --filter shell
    obstatus-logs --elevated
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from obstatus.config import DEFAULT_CONFIG, load_config
from obstatus.runner import CommandResult, CommandRunner, ObstatusError

log = logging.getLogger(__name__)

MIN_LINES = 50
MAX_LINES = 1000

# name -> (label, extra journalctl args)
SYSTEM_FILTERS: dict[str, tuple[str, list[str]]] = {
    "all":        ("All Logs",         []),
    "kernel":     ("Kernel Logs",      ["-k"]),
    "boot":       ("Boot Logs",        ["-b"]),
    "services":   ("System Services",  ["-u", "systemd"]),
    "auth":       ("Authentication",   ["-u", "systemd-logind"]),
    "cron":       ("Cron Jobs",        ["-u", "cron"]),
    "network":    ("Network Manager",  ["-u", "NetworkManager"]),
    "bluetooth":  ("Bluetooth",        ["-u", "bluetooth"]),
    "usb":        ("USB Events",       ["-k"]),
}

USER_FILTERS: dict[str, tuple[str, list[str]]] = {
    "all":       ("All User Logs",    []),
    "services":  ("User Services",    []),
    "session":   ("Desktop Session",  ["_SYSTEMD_USER_UNIT=gnome-session.target"]),
    "apps":      ("Applications",     ["_COMM=gjs"]),
    "shell":     ("Shell",            ["_COMM=gnome-shell"]),
}

# Filters whose output is narrowed in-process after journalctl returns.
LINE_FILTERS: dict[str, str] = {"usb": "usb"}

PRIORITIES: dict[str, str] = {
    "all":      "All Priorities",
    "emerg":    "Emergency",
    "alert":    "Alert",
    "crit":     "Critical",
    "err":      "Error",
    "warning":  "Warning",
    "notice":   "Notice",
    "info":     "Info",
    "debug":    "Debug",
}

# pkexec exits 126 when the authentication dialog was dismissed.
PKEXEC_DISMISSED = 126

# Fallback markers for tools that only report on stderr. English only.
DISMISSED_MARKER = "dismissed"
PERMISSION_MARKER = "insufficient permissions"

ELEVATED_USER_ERROR = "Elevated permissions only apply to system logs."

PERMISSION_HELP = (
    "System logs require elevated permissions.\n\n"
    "To view system logs, you can:\n"
    "1. Add your user to the 'systemd-journal' group:\n"
    "   sudo usermod -a -G systemd-journal $USER\n"
    "   (requires logout/login to take effect)\n\n"
    "2. Or run journalctl manually in terminal:\n"
    "   journalctl -n 200 --no-pager\n\n"
    "Showing accessible logs instead:\n\n"
)


# ── Data types ─────────────────────────────────────────────────────────────


class LogStatus(Enum):
    OK = "ok"
    EMPTY = "empty"
    PERMISSION = "permission"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True)
class LogQuery:
    filter: str = "all"
    priority: str = "all"
    user: bool = False
    since: str | None = "5 minutes ago"
    lines: int | None = None

    def __post_init__(self) -> None:
        filters = USER_FILTERS if self.user else SYSTEM_FILTERS
        if self.filter not in filters:
            raise ValueError(f"unknown {'user' if self.user else 'system'} log filter {self.filter!r}")
        if self.priority not in PRIORITIES:
            raise ValueError(f"unknown priority {self.priority!r}")


@dataclass(frozen=True)
class LogResult:
    status: LogStatus
    text: str
    stderr: str = ""

    @property
    def entry_count(self) -> int:
        return len(self.text.split("\n"))

    @property
    def is_error(self) -> bool:
        return self.status is LogStatus.ERROR


# ── Argument building ──────────────────────────────────────────────────────


def clamp_lines(lines: int) -> int:
    return max(MIN_LINES, min(lines, MAX_LINES))


def build_journal_args(query: LogQuery) -> list[str]:
    """Arguments for ``journalctl`` (without the program name itself)."""
    args: list[str] = []
    if query.since:
        args += ["--since", query.since]
    args += ["--no-pager"]
    if query.user:
        args += ["--user"]
    args += ["-q"]
    if query.lines is not None:
        args += ["-n", str(clamp_lines(query.lines))]
    if query.priority != "all":
        args += ["-p", query.priority]
    filters = USER_FILTERS if query.user else SYSTEM_FILTERS
    args += filters[query.filter][1]
    return args


def narrow_output(query: LogQuery, result: CommandResult) -> CommandResult:
    """Apply the in-process line filter (USB Events) to stdout."""
    needle = None if query.user else LINE_FILTERS.get(query.filter)
    if needle is None or not result.stdout:
        return result
    kept = [line for line in result.stdout.splitlines() if needle in line.lower()]
    return CommandResult("\n".join(kept), result.stderr, result.returncode)


# ── Classification ─────────────────────────────────────────────────────────


def classify(result: CommandResult, elevated: bool, user: bool = False) -> LogResult:
    """Turn raw journalctl/pkexec output into a status plus display text."""
    out, err = result.stdout, result.stderr

    if elevated and (result.returncode == PKEXEC_DISMISSED or DISMISSED_MARKER in err):
        return LogResult(LogStatus.CANCELLED, "Authentication cancelled by user.", err)

    if not elevated and PERMISSION_MARKER in err:
        return LogResult(
            LogStatus.PERMISSION,
            PERMISSION_HELP + (out or "No accessible logs found"),
            err,
        )

    if err.strip():
        if elevated:
            text = f"Error reading logs with elevated permissions:\n{err}\n\nOutput:\n{out or 'No output'}"
        elif user:
            text = f"Error reading logs:\n{err}"
        else:
            text = f"Error reading logs:\n{err}\n\nOutput:\n{out or 'No output'}"
        return LogResult(LogStatus.ERROR, text, err)

    if not out.strip():
        return LogResult(LogStatus.EMPTY, "No user logs found" if user else "No logs found")
    return LogResult(LogStatus.OK, out)


# ── Reading ────────────────────────────────────────────────────────────────


class JournalReader:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def read(self, query: LogQuery, elevated: bool = False) -> LogResult:
        """Fetch logs for *query*; never raises, failures come back as ERROR."""
        if elevated and query.user:
            return LogResult(LogStatus.ERROR, ELEVATED_USER_ERROR)
        args = build_journal_args(query)
        try:
            if elevated:
                result = self.runner.run("pkexec", ["journalctl", *args])
            else:
                result = self.runner.run("journalctl", args)
        except ObstatusError as e:
            log.warning("journal read failed: %s", e)
            return LogResult(LogStatus.ERROR, f"Error loading logs: {e}")

        classified = classify(narrow_output(query, result), elevated, query.user)
        log.debug("journal read: %s (%d lines)", classified.status.value, classified.entry_count)
        return classified


# ── CLI ────────────────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(description="Show recent journal entries.")
    parser.add_argument("--user", action="store_true", help="Read the user journal")
    parser.add_argument("--filter", default="all", help="Log source filter (see --list)")
    parser.add_argument("--priority", default="all", choices=list(PRIORITIES), help="Minimum priority")
    parser.add_argument("--lines", type=int, default=None, help=f"Max entries ({MIN_LINES}-{MAX_LINES})")
    parser.add_argument("--since", default=None, help="journalctl --since value")
    parser.add_argument("--elevated", action="store_true", help="Read system logs through pkexec")
    parser.add_argument("--list", action="store_true", help="List the available filters and exit")
    parser.add_argument("--config", type=Path, default=None, metavar="PATH", help="Path to TOML config file")
    parser.add_argument("--debug", action="store_true", help="Log every command run")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)

    if args.list:
        for title, filters in (("System", SYSTEM_FILTERS), ("User", USER_FILTERS)):
            print(f"{title} filters:")
            for name, (label, _) in filters.items():
                print(f"  {name:12s}  {label}")
        return

    if args.user and args.elevated:
        parser.error("--elevated only applies to system logs")

    config = load_config(args.config)
    log_cfg = {**DEFAULT_CONFIG["logs"], **config.get("logs", {})}
    try:
        query = LogQuery(
            filter=args.filter,
            priority=args.priority,
            user=args.user,
            since=args.since or log_cfg["since"],
            lines=args.lines if args.lines is not None else int(log_cfg["lines"]),
        )
    except ValueError as e:
        parser.error(str(e))

    result = JournalReader(CommandRunner()).read(query, elevated=args.elevated)
    print(result.text)
    if result.is_error:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
