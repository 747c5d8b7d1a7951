"""Process listing built from ``ps`` output.

Usage:
    obstatus-processes
    obstatus-processes --sort memory --limit 20
"""

from __future__ import annotations

import argparse
import logging
import re
from dataclasses import dataclass

import psutil

from obstatus.parsers import parse_nproc
from obstatus.runner import CommandRunner, ObstatusError

log = logging.getLogger(__name__)

PS_LIST_ARGS = ["xo", "pid,%cpu,%mem,rss,args", "--sort=-%cpu", "--no-headers"]
PS_TOP_ARGS = ["axo", "comm,%cpu", "--sort=-%cpu"]
MAX_NAME_LEN = 40
SORT_COLUMNS = ("name", "pid", "cpu", "memory")

_PS_LINE = re.compile(r"^(\S+)\s+(\S+)\s+(\S+)\s+(\S+)\s+(.+)$")
_TOP_LINE = re.compile(r"^(.+?)\s+([\d.]+)$")


# ── Data types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    name: str
    command: str
    cpu: float  # percent of total machine capacity (ps %cpu / cores)
    memory: float  # %mem as reported by ps
    memory_kb: int  # RSS


@dataclass(frozen=True)
class TopProcess:
    name: str
    cpu: float


# ── Helpers ────────────────────────────────────────────────────────────────


def _float_or_zero(token: str) -> float:
    try:
        return float(token)
    except ValueError:
        return 0.0


def is_kernel_thread(command: str) -> bool:
    return command.startswith("[") and "]" in command


def is_ps_itself(name: str, command: str) -> bool:
    return name == "ps" or command == "ps" or command.startswith("ps ")


def process_name(command: str) -> str:
    """Basename of the executable: ``/usr/bin/foo --flag`` -> ``foo``."""
    first = command.split(" ")[0]
    name = first.rsplit("/", 1)[-1] if "/" in first else first
    if len(name) > MAX_NAME_LEN:
        name = name[: MAX_NAME_LEN - 3] + "..."
    return name


def format_kb(kb: float) -> str:
    """RSS kilobytes as ``512 KB``, ``2.0 MB`` or ``2.0 GB``."""
    if kb >= 1024 * 1024:
        return f"{kb / (1024 * 1024):.1f} GB"
    if kb >= 1024:
        return f"{kb / 1024:.1f} MB"
    return f"{kb:.0f} KB"


def read_core_count(runner: CommandRunner) -> int:
    """Logical core count from ``nproc``, falling back to psutil and then 1."""
    try:
        out, _ = runner.run("nproc")
        return parse_nproc(out)
    except ObstatusError as e:
        log.warning("nproc failed (%s), using psutil core count", e)
    return psutil.cpu_count(logical=True) or 1


# ── Parsing ────────────────────────────────────────────────────────────────


def parse_ps_listing(text: str, cores: int) -> list[ProcessInfo]:
    """Parse ``ps xo pid,%cpu,%mem,rss,args`` into per-process records.

    Kernel threads and the ``ps`` call itself are dropped; CPU is divided by
    *cores* because ps reports a share of one core.
    """
    cores = max(cores, 1)
    processes: list[ProcessInfo] = []
    for raw in text.strip().splitlines():
        match = _PS_LINE.match(raw.strip())
        if not match:
            continue
        pid_s, cpu_s, mem_s, rss_s, command = match.groups()
        command = command.strip()
        if is_kernel_thread(command):
            continue
        name = process_name(command)
        if is_ps_itself(name, command):
            continue
        try:
            pid = int(pid_s)
        except ValueError:
            continue
        processes.append(ProcessInfo(
            pid=pid,
            name=name,
            command=command,
            cpu=round(_float_or_zero(cpu_s) / cores, 1),
            memory=_float_or_zero(mem_s),
            memory_kb=int(_float_or_zero(rss_s)),
        ))
    return processes


def parse_top_processes(text: str, cores: int, limit: int = 5) -> list[TopProcess]:
    """First *limit* rows of ``ps axo comm,%cpu --sort=-%cpu``, header skipped."""
    cores = max(cores, 1)
    top: list[TopProcess] = []
    for raw in text.strip().splitlines()[1:]:
        if len(top) >= limit:
            break
        match = _TOP_LINE.match(raw.strip())
        if not match:
            continue
        name = match.group(1)
        if name == "ps":
            continue
        top.append(TopProcess(name=name, cpu=round(float(match.group(2)) / cores, 1)))
    return top


# ── Aggregation ────────────────────────────────────────────────────────────


def totals(processes: list[ProcessInfo]) -> tuple[float, int]:
    """Return ``(cpu percent capped at 100, total RSS in KB)``."""
    cpu = sum(p.cpu for p in processes)
    kb = sum(p.memory_kb for p in processes)
    return min(cpu, 100.0), kb


def sort_processes(
    processes: list[ProcessInfo], column: str = "cpu", ascending: bool = False
) -> list[ProcessInfo]:
    if column not in SORT_COLUMNS:
        raise ValueError(f"unknown sort column {column!r}")
    keys = {
        "name": lambda p: p.name.lower(),
        "pid": lambda p: p.pid,
        "cpu": lambda p: p.cpu,
        "memory": lambda p: p.memory_kb,
    }
    return sorted(processes, key=keys[column], reverse=not ascending)


def list_processes(runner: CommandRunner, cores: int | None = None) -> list[ProcessInfo]:
    if cores is None:
        cores = read_core_count(runner)
    out, _ = runner.run("ps", PS_LIST_ARGS)
    return parse_ps_listing(out, cores)


# ── CLI ────────────────────────────────────────────────────────────────────


def print_processes(processes: list[ProcessInfo], limit: int) -> None:
    print(f"  {'PID':>7s}  {'CPU%':>6s}  {'MEM%':>5s}  {'MEM':>10s}  NAME")
    print(f"  {'─'*7}  {'─'*6}  {'─'*5}  {'─'*10}  {'─'*30}")
    for p in processes[:limit]:
        print(f"  {p.pid:>7d}  {p.cpu:>5.1f}%  {p.memory:>4.1f}%  {format_kb(p.memory_kb):>10s}  {p.name}")
    cpu, kb = totals(processes)
    print()
    print(f"  Total CPU: {cpu:.1f}%   Total Memory: {format_kb(kb)}   ({len(processes)} processes)")


def main() -> None:
    parser = argparse.ArgumentParser(description="List your processes by CPU usage.")
    parser.add_argument("--sort", choices=SORT_COLUMNS, default="cpu", help="Sort column (default: cpu)")
    parser.add_argument("--asc", action="store_true", help="Sort ascending")
    parser.add_argument("--limit", type=int, default=25, help="Rows to print (default: 25)")
    parser.add_argument("--debug", action="store_true", help="Log every command run")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)
    runner = CommandRunner()
    try:
        processes = list_processes(runner)
    except ObstatusError as e:
        print(f"obstatus: could not list processes: {e}")
        raise SystemExit(1) from e
    print_processes(sort_processes(processes, args.sort, args.asc), args.limit)


if __name__ == "__main__":
    main()
