"""Static system information.

Two views: the detailed one comes from ``fastfetch --format json``; the quick
summary stitches together ``lsb_release``, ``uname``, ``hostname``,
``uptime``, ``free`` and /proc/cpuinfo.

Usage:
    obstatus-info
    obstatus-info --summary
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable

from obstatus.parsers import parse_cpu_model, parse_free_total
from obstatus.runner import CommandRunner, ObstatusError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InfoRow:
    title: str
    subtitle: str


ERROR_ROW = InfoRow("Error", "Could not load system information")


# ── Formatting ─────────────────────────────────────────────────────────────


def format_uptime(milliseconds: float) -> str:
    seconds = int(milliseconds // 1000)
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    mins = (seconds % 3600) // 60

    parts = []
    if days > 0:
        parts.append(f"{days} days")
    if hours > 0:
        parts.append(f"{hours} hours")
    if mins > 0:
        parts.append(f"{mins} mins")
    return ", ".join(parts) or "0 mins"


def format_bytes(n: float) -> str:
    """Binary units with two decimals: ``1.50 GiB``."""
    if n >= 1024**3:
        return f"{n / 1024**3:.2f} GiB"
    if n >= 1024**2:
        return f"{n / 1024**2:.2f} MiB"
    if n >= 1024:
        return f"{n / 1024:.2f} KiB"
    return f"{n:.0f} B"


def _usage(r: dict[str, Any]) -> str:
    return f"{format_bytes(r['used'])} / {format_bytes(r['total'])} ({r['percentage']:.1f}%)"


def _packages(r: dict[str, Any]) -> str:
    packages = []
    if r.get("dpkg", 0) > 0:
        packages.append(f"{r['dpkg']} (dpkg)")
    flatpak = r.get("flatpakSystem", 0) + r.get("flatpakUser", 0)
    if flatpak > 0:
        packages.append(f"{flatpak} (flatpak)")
    if r.get("snap", 0) > 0:
        packages.append(f"{r['snap']} (snap)")
    return ", ".join(packages)


def _battery(r: dict[str, Any]) -> InfoRow:
    status = f" [{r['status']}]" if r.get("status") else ""
    return InfoRow(f"Battery ({r['modelName']})", f"{r['percentage']:.1f}%{status}")


def _gpu(r: dict[str, Any]) -> InfoRow:
    kind = f"[{r['type']}]" if r.get("type") else ""
    return InfoRow(f"GPU {r['index'] + 1}", f"{r['name']} {kind}")


# fastfetch module type -> row builder
_ROWS: dict[str, Callable[[dict[str, Any]], InfoRow | None]] = {
    "OS":       lambda r: InfoRow("OS", r.get("prettyName") or r["name"]),
    "Host":     lambda r: InfoRow("Host", r["name"]),
    "Kernel":   lambda r: InfoRow("Kernel", f"{r['name']} {r['release']}"),
    "Uptime":   lambda r: InfoRow("Uptime", format_uptime(r["uptime"])),
    "Packages": lambda r: InfoRow("Packages", _packages(r)),
    "Shell":    lambda r: InfoRow("Shell", f"{r['name']} {r['version']}"),
    "Display":  lambda r: InfoRow("Display", f"{r['width']}x{r['height']} @ {r['refreshRate']} Hz"),
    "DE":       lambda r: InfoRow("Desktop Environment", f"{r['name']} {r['version']}"),
    "WM":       lambda r: InfoRow("Window Manager", f"{r['pretty']}"),
    "Theme":    lambda r: InfoRow("Theme", r.get("pretty") or r["name"]),
    "Icons":    lambda r: InfoRow("Icons", r.get("pretty") or r["name"]),
    "Font":     lambda r: InfoRow("Font", f"{r['pretty']}"),
    "Cursor":   lambda r: InfoRow("Cursor", f"{r['name']} ({r['size']}px)"),
    "Terminal": lambda r: InfoRow("Terminal", f"{r['exe']} {r['version']}"),
    "CPU":      lambda r: InfoRow("CPU", r["name"]),
    "GPU":      _gpu,
    "Memory":   lambda r: InfoRow("Memory", _usage(r)),
    "Swap":     lambda r: InfoRow("Swap", _usage(r)) if r.get("total", 0) > 0 else None,
    "Disk":     lambda r: InfoRow(f"Disk ({r['mountpoint']})", f"{_usage(r)} - {r['filesystem']}"),
    "LocalIP":  lambda r: InfoRow(f"Local IP ({r['name']})", r["ip"]),
    "Battery":  _battery,
    "Locale":   lambda r: InfoRow("Locale", r["result"]),
}


# ── Readers ────────────────────────────────────────────────────────────────


def parse_fastfetch(text: str) -> list[InfoRow]:
    """Rows for every recognised fastfetch module; unknown or failed ones are skipped."""
    rows: list[InfoRow] = []
    for item in json.loads(text):
        if item.get("error") or item.get("type") in ("Separator", "Title"):
            continue
        build = _ROWS.get(item.get("type", ""))
        if build is None:
            continue
        try:
            row = build(item.get("result") or {})
        except (KeyError, TypeError, ValueError) as e:
            log.debug("skipping fastfetch %s entry: %s", item.get("type"), e)
            continue
        if row is not None and row.title and row.subtitle:
            rows.append(row)
    return rows


def read_fastfetch(runner: CommandRunner) -> list[InfoRow]:
    try:
        out, _ = runner.run("fastfetch", ["--format", "json"])
        return parse_fastfetch(out)
    except (ObstatusError, ValueError, AttributeError, TypeError) as e:
        log.warning("fastfetch failed: %s", e)
        return [ERROR_ROW]


def read_summary(runner: CommandRunner) -> list[InfoRow]:
    """Quick overview; a command that fails shows up as ``Unknown``."""

    def first(command: str, args: list[str], parse: Callable[[str], str] = str.strip) -> str:
        try:
            out, _ = runner.run(command, args)
            return parse(out) or "Unknown"
        except ObstatusError as e:
            log.warning("%s failed: %s", command, e)
            return "Unknown"

    os_name = first("lsb_release", ["-ds"])
    return [
        InfoRow("OS", "Linux" if os_name == "Unknown" else os_name),
        InfoRow("Kernel", first("uname", ["-r"])),
        InfoRow("Desktop", os.environ.get("XDG_CURRENT_DESKTOP") or "Unknown"),
        InfoRow("Memory", first("free", ["-h"], parse_free_total)),
        InfoRow("CPU", first("cat", ["/proc/cpuinfo"], parse_cpu_model)),
        InfoRow("Hostname", first("hostname", [])),
        InfoRow("Uptime", first("uptime", ["-p"], lambda s: s.strip().removeprefix("up "))),
    ]


# ── CLI ────────────────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(description="Show system information.")
    parser.add_argument("--summary", action="store_true", help="Quick overview without fastfetch")
    parser.add_argument("--debug", action="store_true", help="Log every command run")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)
    runner = CommandRunner()
    rows = read_summary(runner) if args.summary else read_fastfetch(runner)
    width = max((len(r.title) for r in rows), default=0)
    for row in rows:
        print(f"  {row.title:{width}s}  {row.subtitle}")


if __name__ == "__main__":
    main()
