"""Interactive terminal dashboard for obstatus.

Shows CPU, memory and disk gauges, network throughput, temperatures, load
average and the busiest processes, redrawn from the snapshots a
``MetricsPoller`` publishes. Colour thresholds come from the config.

Usage:
    obstatus-dashboard
    obstatus-dashboard --interval 2 --config path/to/config.toml
"""

from __future__ import annotations

import argparse
import curses
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from obstatus.config import DEFAULT_CONFIG, load_config
from obstatus.monitor import NA, WARMING_UP, format_mbps
from obstatus.poller import MetricsPoller, SystemSnapshot
from obstatus.runner import CommandRunner

# ── Constants ──────────────────────────────────────────────────────────────

SPARK = " ▁▂▃▄▅▆▇█"
BAR_FILL = "█"
BAR_EMPTY = "░"
TEMP_SCALE_MAX = 100.0
# Per-process CPU colouring in the process panel
PROC_WARN_CPU = 20.0
PROC_CRIT_CPU = 50.0

# Curses colour-pair IDs
C_NORMAL = 1
C_WARNING = 2
C_CRITICAL = 3
C_TITLE = 4
C_DIM = 5
C_BLUE = 6


# ── Colour helpers ─────────────────────────────────────────────────────────


def _init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    for pair, fg in (
        (C_NORMAL, curses.COLOR_GREEN),
        (C_WARNING, curses.COLOR_YELLOW),
        (C_CRITICAL, curses.COLOR_RED),
        (C_TITLE, curses.COLOR_CYAN),
        (C_DIM, curses.COLOR_WHITE),
        (C_BLUE, curses.COLOR_BLUE),
    ):
        curses.init_pair(pair, fg, -1)


def _severity_color(value: float, warn: float, crit: float) -> int:
    if value >= crit:
        return C_CRITICAL
    if value >= warn:
        return C_WARNING
    return C_NORMAL


def _metric_color(value: float, metric: str, thresh: dict[str, Any]) -> int:
    levels = thresh.get(metric) or DEFAULT_CONFIG["thresholds"].get(metric, {})
    return _severity_color(
        value,
        float(levels.get("warning", 80)),
        float(levels.get("critical", 95)),
    )


# ── State fed by the poller ────────────────────────────────────────────────


@dataclass
class DashboardState:
    """Latest snapshot plus short histories for the sparklines."""

    snapshot: SystemSnapshot | None = None
    cpu_history: deque[float] = field(default_factory=lambda: deque(maxlen=120))
    net_history: deque[float] = field(default_factory=lambda: deque(maxlen=120))

    def update(self, snap: SystemSnapshot) -> None:
        self.snapshot = snap
        if snap.cpu_percent is not None:
            self.cpu_history.append(float(snap.cpu_percent))
        if snap.net_down_gauge is not None:
            self.net_history.append(snap.net_down_gauge)


def percent_text(snap: SystemSnapshot, key: str, value: float | None) -> str:
    if value is not None:
        return f" {value:5.0f}%"
    if key in snap.warming_up:
        return f" {WARMING_UP:>6s}"
    return f" {NA:>6s}"


# ── Curses drawing primitives ──────────────────────────────────────────────


def spark_line(values: list[float], max_val: float) -> str:
    """One block character per value, scaled against *max_val*."""
    top = len(SPARK) - 1
    if max_val <= 0:
        return SPARK[0] * len(values)
    return "".join(SPARK[int(max(0.0, min(v / max_val, 1.0)) * top)] for v in values)


def bar_cells(width: int, pct: float) -> tuple[int, int]:
    """Split *width* cells into (filled, empty) for a 0-100 percentage."""
    filled = int(width * max(0.0, min(pct, 100.0)) / 100.0)
    return filled, width - filled


def _safe(win: curses.window, *args: Any) -> None:
    """addstr that ignores writes falling off the window edge."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def _fits(win: curses.window, y: int, x: int) -> bool:
    rows, cols = win.getmaxyx()
    return y < rows - 1 and x < cols - 1


def _draw_box(
    win: curses.window,
    y: int,
    x: int,
    h: int,
    w: int,
    title: str = "",
) -> curses.window | None:
    """Bordered sub-window clipped to *win*; None when there is no room."""
    rows, cols = win.getmaxyx()
    h, w = min(h, rows - y), min(w, cols - x)
    if h < 3 or w < 4:
        return None
    try:
        panel = win.subwin(h, w, y, x)
        panel.box()
        if title and len(title) + 4 < w:
            panel.addstr(0, 2, f" {title} ", curses.color_pair(C_TITLE) | curses.A_BOLD)
    except curses.error:
        return None
    return panel


def _draw_bar(
    win: curses.window,
    y: int,
    x: int,
    width: int,
    pct: float,
    label: str = "",
    color: int = C_NORMAL,
    suffix: str | None = None,
) -> None:
    """``label ████░░░░ suffix`` on a single row."""
    if not _fits(win, y, x):
        return
    cols = win.getmaxyx()[1]
    if suffix is None:
        suffix = f" {pct:5.1f}%"

    start = x
    if label:
        _safe(win, y, start, f"{label:>6s} ", curses.color_pair(C_DIM))
        start += 7
    cells = min(width - (start - x), cols - start - 1) - len(suffix)
    if cells < 3:
        return

    filled, empty = bar_cells(cells, pct)
    bold = curses.color_pair(color) | curses.A_BOLD
    _safe(win, y, start, BAR_FILL * filled, bold)
    _safe(win, BAR_EMPTY * empty, curses.color_pair(C_DIM))
    _safe(win, suffix, bold)


def _draw_sparkline(
    win: curses.window,
    y: int,
    x: int,
    width: int,
    history: deque[float],
    max_val: float = 100.0,
    color: int = C_BLUE,
) -> None:
    """Latest *width* values of *history* as a sparkline."""
    if not _fits(win, y, x):
        return
    cells = min(width, win.getmaxyx()[1] - x - 1, len(history))
    if cells < 1:
        return
    _safe(win, y, x, spark_line(list(history)[-cells:], max_val), curses.color_pair(color))


# ── Panel renderers ────────────────────────────────────────────────────────


def draw_resources_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
    thresh: dict[str, Any],
) -> None:
    box = _draw_box(win, y, x, h, w, "Resources")
    snap = state.snapshot
    if not box or snap is None:
        return
    row = 1
    for label, key, metric, value in (
        ("CPU", "cpu", "cpu_percent", snap.cpu_percent),
        ("Memory", "memory", "memory_percent", snap.memory_percent),
        ("Disk", "disk", "disk_percent", snap.disk_percent),
    ):
        pct = float(value) if value is not None else 0.0
        color = _metric_color(pct, metric, thresh) if value is not None else C_DIM
        _draw_bar(box, row, 1, w - 3, pct, label, color, percent_text(snap, key, value))
        row += 2

    if row < h - 1 and len(state.cpu_history) > 1:
        _safe(box, row, 2, "cpu    ", curses.color_pair(C_DIM))
        _draw_sparkline(box, row, 9, w - 11, state.cpu_history, 100.0, C_BLUE)


def draw_network_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
    gauge_max: float,
) -> None:
    box = _draw_box(win, y, x, h, w, "Network")
    snap = state.snapshot
    if not box or snap is None:
        return
    row = 1
    if snap.net_down_mbps is None or snap.net_up_mbps is None:
        text = WARMING_UP if "network" in snap.warming_up else NA
        _safe(box, row, 2, f"Waiting for a second sample  {text}", curses.color_pair(C_DIM))
        return

    scale = 100.0 / gauge_max if gauge_max > 0 else 1.0
    down = (snap.net_down_gauge or 0.0) * scale
    up = (snap.net_up_gauge or 0.0) * scale
    _draw_bar(box, row, 1, w - 3, down, "Down", C_BLUE, f" {format_mbps(snap.net_down_mbps):>10s}")
    row += 1
    _draw_bar(box, row, 1, w - 3, up, "Up", C_NORMAL, f" {format_mbps(snap.net_up_mbps):>10s}")
    row += 2

    if row < h - 1 and len(state.net_history) > 1:
        _safe(box, row, 2, "down   ", curses.color_pair(C_DIM))
        _draw_sparkline(box, row, 9, w - 11, state.net_history, gauge_max, C_BLUE)


def draw_temp_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
    thresh: dict[str, Any],
) -> None:
    box = _draw_box(win, y, x, h, w, "Temperature")
    snap = state.snapshot
    if not box or snap is None:
        return
    row = 1
    for label, metric, temp in (("CPU", "cpu_temp", snap.cpu_temp), ("GPU", "gpu_temp", snap.gpu_temp)):
        if temp is None:
            _safe(box, row, 2, f"{label:>5s}  {NA}", curses.color_pair(C_DIM))
        else:
            color = _metric_color(temp, metric, thresh)
            bar_pct = min(temp / TEMP_SCALE_MAX * 100.0, 100.0)
            _draw_bar(box, row, 1, w - 3, bar_pct, label, color, f" {temp:3d} °C")
        row += 1

    if snap.gpu_util is not None and row < h - 1:
        row += 1
        color = _severity_color(snap.gpu_util, 80.0, 95.0)
        _draw_bar(box, row, 1, w - 3, snap.gpu_util, "GPU%", color)


def draw_load_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
) -> None:
    box = _draw_box(win, y, x, h, w, "Load Average")
    snap = state.snapshot
    if not box or snap is None:
        return
    if snap.load_avg is None:
        _safe(box, 1, 2, f"1 min {NA}   5 min {NA}   15 min {NA}", curses.color_pair(C_DIM))
        return
    l1, l5, l15 = snap.load_avg
    _safe(box, 1, 2, f"1 min {l1:.2f}   5 min {l5:.2f}   15 min {l15:.2f}"[: w - 4], curses.color_pair(C_DIM))


def draw_proc_panel(
    win: curses.window,
    y: int,
    x: int,
    w: int,
    h: int,
    state: DashboardState,
) -> None:
    box = _draw_box(win, y, x, h, w, "Top Processes")
    snap = state.snapshot
    if not box or snap is None:
        return
    row = 1

    hdr = f" {'CPU%':>6s}  NAME"
    _safe(box, row, 1, hdr[: w - 3], curses.color_pair(C_TITLE) | curses.A_BOLD)
    row += 1

    if snap.top_processes is None:
        _safe(box, row, 2, NA, curses.color_pair(C_DIM))
        return
    for p in snap.top_processes[: max(0, h - 3)]:
        color = _severity_color(p.cpu, PROC_WARN_CPU, PROC_CRIT_CPU)
        _safe(box, row, 1, f" {p.cpu:>5.1f}%  {p.name}"[: w - 3], curses.color_pair(color))
        row += 1


# ── Header ─────────────────────────────────────────────────────────────────


def _draw_header(win: curses.window, w: int, interval: float) -> None:
    bar = curses.color_pair(C_TITLE) | curses.A_REVERSE
    left = f" obstatus  {time.strftime('%H:%M:%S')}"
    right = f"every {interval:g}s · q quit · r reset "
    _safe(win, 0, 0, f"{left}{right:>{max(1, w - 1 - len(left))}}"[: w - 1], bar)
    _safe(win, 0, 1, "obstatus", bar | curses.A_BOLD)


# ── Main loop ──────────────────────────────────────────────────────────────


@dataclass
class PollSchedule:
    """Monotonic deadline for the next poll.

    Keypresses wake the loop early; only a due schedule polls, so network
    deltas always span a full interval.
    """

    interval: float
    next_at: float = 0.0

    def due(self, now: float) -> bool:
        return now >= self.next_at

    def mark(self, now: float) -> None:
        self.next_at = now + self.interval

    def wait_ms(self, now: float) -> int:
        return max(0, int((self.next_at - now) * 1000))


def _dashboard_loop(
    stdscr: curses.window, config: dict[str, Any], poller: MetricsPoller
) -> None:
    _init_colors()
    curses.curs_set(0)

    thresh: dict[str, Any] = config.get("thresholds", DEFAULT_CONFIG["thresholds"])
    gauge_max = float(config.get("network_gauge_mbps", 100.0))
    state = DashboardState()
    poller.subscribe(state.update)
    schedule = PollSchedule(poller.interval)

    while True:
        if schedule.due(time.monotonic()):
            poller.publish(poller.poll_once())
            schedule.mark(time.monotonic())

        max_y, max_x = stdscr.getmaxyx()
        stdscr.erase()

        if max_y < 12 or max_x < 40:
            _safe(stdscr, 0, 0, "Terminal too small (need 40x12+)")
        else:
            _draw_header(stdscr, max_x, poller.interval)
            if max_x >= 82:
                col_w = max_x // 2
                draw_resources_panel(stdscr, 1, 0, col_w, 8, state, thresh)
                draw_network_panel(stdscr, 9, 0, col_w, 6, state, gauge_max)
                draw_temp_panel(stdscr, 1, col_w, max_x - col_w, 6, state, thresh)
                draw_load_panel(stdscr, 7, col_w, max_x - col_w, 3, state)
                draw_proc_panel(stdscr, 10, col_w, max_x - col_w, max(5, max_y - 10), state)
            else:
                draw_resources_panel(stdscr, 1, 0, max_x, 8, state, thresh)
                draw_network_panel(stdscr, 9, 0, max_x, 6, state, gauge_max)
                draw_temp_panel(stdscr, 15, 0, max_x, 6, state, thresh)
                if max_y > 21:
                    draw_proc_panel(stdscr, 21, 0, max_x, max_y - 21, state)

        stdscr.refresh()

        stdscr.timeout(schedule.wait_ms(time.monotonic()))
        key = stdscr.getch()
        if key in (ord("q"), ord("Q")):
            return
        if key in (ord("r"), ord("R")):
            poller.reset()
            schedule.next_at = 0.0
        if key == curses.KEY_RESIZE:
            stdscr.clear()


# ── CLI entry point ────────────────────────────────────────────────────────


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Interactive system status dashboard.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between refreshes (default: refresh_interval from config)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    args = parser.parse_args()

    # curses owns the terminal; keep warnings quiet unless they are fatal.
    logging.basicConfig(level=logging.ERROR)

    config = load_config(args.config)
    runner = CommandRunner(timeout=float(config.get("command_timeout", 0)) or None)
    poller = MetricsPoller(runner, config, interval=args.interval)
    try:
        curses.wrapper(_dashboard_loop, config, poller)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
