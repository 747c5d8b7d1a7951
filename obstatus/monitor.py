"""Lightweight system status poller for the terminal.

Prints one block of readings per poll cycle. CPU and network need two
samples, so they read ``...`` on the first cycle.

Usage:
    obstatus
    obstatus --interval 2 --once
    obstatus --dump-config > ~/.config/obstatus/config.toml
"""

from __future__ import annotations

import argparse
import logging
import threading
import time
from pathlib import Path
from typing import Any

from obstatus.config import dump_default_config, load_config
from obstatus.poller import MetricsPoller, SystemSnapshot
from obstatus.runner import CommandRunner

NA = "N/A"
WARMING_UP = "..."


# ── Formatting ─────────────────────────────────────────────────────────────


def format_mbps(mbps: float) -> str:
    """``640 Kbps`` below one megabit, ``12.5 Mbps`` above."""
    if mbps < 1:
        return f"{mbps * 1000:.0f} Kbps"
    return f"{mbps:.1f} Mbps"


def format_value(snap: SystemSnapshot, key: str, value: Any, pattern: str) -> str:
    if value is not None:
        return pattern.format(value)
    return WARMING_UP if key in snap.warming_up else NA


def render_snapshot(snap: SystemSnapshot) -> str:
    ts = time.strftime("%H:%M:%S", time.localtime(snap.timestamp))
    lines = [f"\n── obstatus [{ts}] ──"]

    rows = [
        ("CPU", "cpu", snap.cpu_percent, "{}%"),
        ("Memory", "memory", snap.memory_percent, "{}%"),
        ("Disk /", "disk", snap.disk_percent, "{}%"),
        ("CPU Temp", "cpu_temp", snap.cpu_temp, "{}°C"),
        ("GPU Temp", "gpu_temp", snap.gpu_temp, "{}°C"),
        ("GPU Load", "gpu_util", snap.gpu_util, "{}%"),
    ]
    for label, key, value, pattern in rows:
        lines.append(f"  {label:12s}  {format_value(snap, key, value, pattern)}")

    if snap.net_down_mbps is not None and snap.net_up_mbps is not None:
        net = f"↓ {format_mbps(snap.net_down_mbps)}  ↑ {format_mbps(snap.net_up_mbps)}"
    else:
        net = format_value(snap, "network", None, "")
    lines.append(f"  {'Network':12s}  {net}")

    if snap.load_avg is not None:
        l1, l5, l15 = snap.load_avg
        lines.append(f"  {'Load avg':12s}  {l1:.2f} / {l5:.2f} / {l15:.2f}")
    else:
        lines.append(f"  {'Load avg':12s}  {NA}")

    if snap.top_processes:
        lines.append(f"  {'Top':12s}  " + ", ".join(f"{p.name} {p.cpu:.1f}%" for p in snap.top_processes))

    return "\n".join(lines)


def print_snapshot(snap: SystemSnapshot) -> None:
    print(render_snapshot(snap))


# ── Main loop ──────────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Poll system status and print it every interval.",
    )
    parser.add_argument(
        "--interval", type=float, default=None,
        help="Seconds between polls (default: refresh_interval from config, 10)",
    )
    parser.add_argument(
        "--config", type=Path, default=None, metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--once", action="store_true",
        help="Poll twice (one interval apart) so rates are filled, print, and exit",
    )
    parser.add_argument(
        "--dump-config", action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Log every command run and every source failure",
    )
    args = parser.parse_args()

    if args.dump_config:
        print(dump_default_config(), end="")
        return

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    runner = CommandRunner(timeout=float(config.get("command_timeout", 0)) or None)
    poller = MetricsPoller(runner, config, interval=args.interval)

    try:
        if args.once:
            poller.poll_once()
            time.sleep(poller.interval)
            print_snapshot(poller.poll_once())
            return

        print(f"obstatus: polling every {poller.interval:g}s (Ctrl+C to stop)")
        poller.subscribe(print_snapshot)
        poller.run(threading.Event())
    except KeyboardInterrupt:
        print("\nobstatus: stopped.")


if __name__ == "__main__":
    main()
