"""Delta sampling over monotonically increasing kernel counters.

Nothing in here does I/O: callers parse a raw reading (CPU jiffies, network
byte counters) and hand it to a ``CounterSampler``, which remembers the
previous reading per source and turns consecutive pairs into a utilisation
percentage or a throughput rate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ── Raw samples ────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class CpuSample:
    """Aggregate CPU jiffies: idle (idle + iowait) and the sum of all fields."""

    idle: int
    total: int


@dataclass(frozen=True, slots=True)
class NetSample:
    """Received/transmitted bytes summed over every non-loopback interface."""

    rx_bytes: int
    tx_bytes: int


# ── Delta math ─────────────────────────────────────────────────────────────


def cpu_utilization(prev: CpuSample, curr: CpuSample) -> int:
    """Busy percentage between two /proc/stat readings, rounded to an int.

    Returns 0 when the total did not advance (counter reset or clock skew).
    """
    d_total = curr.total - prev.total
    if d_total <= 0:
        return 0
    d_idle = curr.idle - prev.idle
    usage = round(100 * ((d_total - d_idle) / d_total))
    return max(0, min(usage, 100))


def throughput_mbps(prev_bytes: int, curr_bytes: int, interval: float) -> float:
    """Megabits per second moved between two byte-counter readings."""
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    delta = curr_bytes - prev_bytes
    if delta < 0:
        return 0.0
    return (delta * 8) / (interval * 1_000_000)


def gauge_scale(mbps: float, cap: float = 100.0) -> float:
    """Clamp a rate onto a 0..cap gauge. Display only; the real rate is not capped."""
    return max(0.0, min(mbps, cap))


# ── Stateful sampler ───────────────────────────────────────────────────────


class SamplerState(Enum):
    UNINITIALIZED = "uninitialized"
    SAMPLED_ONCE = "sampled_once"
    STEADY = "steady"


@dataclass
class CounterSampler:
    """Previous-sample store keyed by source identity ("cpu", "net", ...).

    The first reading for a key only establishes a baseline and yields no
    value; every later reading is compared against the one before it.
    """

    _prev: dict[str, Any] = field(default_factory=lambda: {})
    _states: dict[str, SamplerState] = field(default_factory=lambda: {})

    def state(self, key: str) -> SamplerState:
        return self._states.get(key, SamplerState.UNINITIALIZED)

    def update(self, key: str, sample: Any) -> Any | None:
        """Store *sample* for *key* and return the reading it replaces."""
        prev = self._prev.get(key)
        self._prev[key] = sample
        if self.state(key) is SamplerState.UNINITIALIZED:
            self._states[key] = SamplerState.SAMPLED_ONCE
            return None
        self._states[key] = SamplerState.STEADY
        return prev

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._prev.clear()
            self._states.clear()
        else:
            self._prev.pop(key, None)
            self._states.pop(key, None)

    def sample_cpu(self, sample: CpuSample, key: str = "cpu") -> int | None:
        prev = self.update(key, sample)
        if prev is None:
            return None
        return cpu_utilization(prev, sample)

    def sample_net(
        self, sample: NetSample, interval: float, key: str = "net"
    ) -> tuple[float, float] | None:
        """Return ``(down_mbps, up_mbps)``, or None while warming up."""
        prev = self.update(key, sample)
        if prev is None:
            return None
        return (
            throughput_mbps(prev.rx_bytes, sample.rx_bytes, interval),
            throughput_mbps(prev.tx_bytes, sample.tx_bytes, interval),
        )
