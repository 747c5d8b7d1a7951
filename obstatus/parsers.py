"""Parsers for the fixed-format output of the tools obstatus polls.

Each parser takes the captured stdout of one command and either returns a
typed value or raises ``ParseError``. They assume the C-locale column layout
of procps, coreutils and lm-sensors.
"""

from __future__ import annotations

import re

from obstatus.runner import ParseError
from obstatus.sampler import CpuSample, NetSample

CPU_SENSOR_LABEL = "Core 0:"
GPU_SENSOR_LABEL = "edge:"


def _int_or_zero(token: str) -> int:
    try:
        return int(token)
    except ValueError:
        return 0


def _find_line(text: str, prefix: str) -> str:
    for line in text.splitlines():
        if line.startswith(prefix):
            return line
    raise ParseError(f"no line starting with {prefix!r}")


# ── CPU / memory / disk ────────────────────────────────────────────────────


def parse_proc_stat(text: str) -> CpuSample:
    """Aggregate ``cpu`` line of /proc/stat -> (idle + iowait, sum of all fields)."""
    parts = _find_line(text, "cpu ").split()[1:]
    try:
        values = [int(v) for v in parts]
    except ValueError as e:
        raise ParseError(f"non-numeric field in cpu line: {e}") from e
    if len(values) < 5:
        raise ParseError(f"cpu line has {len(values)} fields, expected at least 5")
    return CpuSample(idle=values[3] + values[4], total=sum(values))


def parse_free_percent(text: str) -> int:
    """Used memory as a whole percentage, from ``free -m``."""
    values = _find_line(text, "Mem:").split()
    try:
        total, used = int(values[1]), int(values[2])
    except (IndexError, ValueError) as e:
        raise ParseError(f"unexpected Mem: line {values!r}") from e
    if total <= 0:
        raise ParseError("total memory is zero")
    return round(used / total * 100)


def parse_free_total(text: str) -> str:
    """Human-readable total memory (``16Gi``) from ``free -h``."""
    values = _find_line(text, "Mem:").split()
    if len(values) < 2:
        raise ParseError(f"unexpected Mem: line {values!r}")
    return values[1]


def parse_df_percent(text: str) -> int:
    """``Use%`` column of the first filesystem row of ``df -h /``."""
    lines = text.splitlines()
    if len(lines) < 2:
        raise ParseError("df printed no filesystem row")
    parts = lines[1].split()
    if len(parts) < 5:
        raise ParseError(f"df row has {len(parts)} columns, expected at least 5")
    try:
        return int(parts[4].rstrip("%"))
    except ValueError as e:
        raise ParseError(f"bad Use% value {parts[4]!r}") from e


def parse_loadavg(text: str) -> tuple[float, float, float]:
    parts = text.split()
    if len(parts) < 3:
        raise ParseError("loadavg has fewer than 3 fields")
    try:
        return float(parts[0]), float(parts[1]), float(parts[2])
    except ValueError as e:
        raise ParseError(f"bad loadavg {text.strip()!r}") from e


def parse_nproc(text: str) -> int:
    try:
        n = int(text.strip())
    except ValueError as e:
        raise ParseError(f"bad nproc output {text.strip()!r}") from e
    if n < 1:
        raise ParseError(f"nproc reported {n} cores")
    return n


def parse_cpu_model(text: str) -> str:
    """First ``model name`` entry of /proc/cpuinfo."""
    for line in text.splitlines():
        if "model name" in line and ":" in line:
            return line.split(":", 1)[1].strip()
    raise ParseError("no model name in cpuinfo")


# ── Network ────────────────────────────────────────────────────────────────


def parse_net_dev(text: str) -> NetSample:
    """Sum rx/tx bytes over /proc/net/dev, skipping the loopback interface."""
    rx_total = 0
    tx_total = 0
    for line in text.splitlines()[2:]:
        if ":" not in line:
            continue
        iface, _, counters = line.partition(":")
        if iface.strip() == "lo":
            continue
        fields = counters.split()
        if len(fields) < 9:
            continue
        rx_total += _int_or_zero(fields[0])
        tx_total += _int_or_zero(fields[8])
    return NetSample(rx_bytes=rx_total, tx_bytes=tx_total)


# ── Temperatures ───────────────────────────────────────────────────────────


def parse_thermal_zone(text: str) -> int:
    """Millidegrees from a sysfs thermal zone -> whole degrees Celsius."""
    try:
        milli = int(text.strip())
    except ValueError as e:
        raise ParseError(f"bad thermal zone value {text.strip()!r}") from e
    return round(milli / 1000)


def parse_sensors(text: str, label: str) -> int:
    """Temperature following *label* in ``sensors`` output (``Core 0:  +45.0°C``)."""
    match = re.search(re.escape(label) + r"\s+\+(\d+\.\d+)", text)
    if not match:
        raise ParseError(f"no {label!r} reading in sensors output")
    return round(float(match.group(1)))


def parse_nvidia_value(text: str) -> int:
    """Single integer from ``nvidia-smi --format=csv,noheader`` (first GPU)."""
    lines = text.strip().splitlines()
    if not lines:
        raise ParseError("nvidia-smi printed nothing")
    token = lines[0].split(",")[0].strip().rstrip("%").strip()
    try:
        return int(float(token))
    except ValueError as e:
        raise ParseError(f"bad nvidia-smi value {lines[0]!r}") from e
