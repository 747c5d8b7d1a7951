"""Periodic metrics poller.

One ``MetricsPoller`` samples every enabled source once per cycle through an
injected ``CommandRunner``, derives rates from the shared ``CounterSampler``
and publishes a ``SystemSnapshot`` to its subscribers. A source that fails to
run or parse is reported as ``None`` for that cycle; the others still run.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import psutil

from obstatus import parsers
from obstatus.config import DEFAULT_CONFIG
from obstatus.processes import PS_TOP_ARGS, TopProcess, parse_top_processes, read_core_count
from obstatus.runner import CommandNotFoundError, CommandRunner, ObstatusError, ParseError
from obstatus.sampler import CounterSampler, SamplerState, gauge_scale

log = logging.getLogger(__name__)

THERMAL_ZONE = "/sys/class/thermal/thermal_zone0/temp"
NVIDIA_TEMP_ARGS = ["--query-gpu=temperature.gpu", "--format=csv,noheader"]
NVIDIA_UTIL_ARGS = ["--query-gpu=utilization.gpu", "--format=csv,noheader,nounits"]
CPU_TEMP_CHIPS = ("coretemp", "k10temp", "cpu_thermal", "acpitz")


# ── Data types ─────────────────────────────────────────────────────────────


@dataclass
class SystemSnapshot:
    """Everything one poll cycle produced. ``None`` means not available."""

    cycle: int = 0
    timestamp: float = 0.0
    cpu_percent: int | None = None
    memory_percent: int | None = None
    disk_percent: int | None = None
    net_down_mbps: float | None = None
    net_up_mbps: float | None = None
    net_down_gauge: float | None = None
    net_up_gauge: float | None = None
    cpu_temp: int | None = None
    gpu_temp: int | None = None
    gpu_util: int | None = None
    load_avg: tuple[float, float, float] | None = None
    top_processes: list[TopProcess] | None = None
    errors: dict[str, str] = field(default_factory=lambda: {})
    # Rate sources that have a baseline but no second sample yet
    warming_up: list[str] = field(default_factory=lambda: [])


Subscriber = Callable[[SystemSnapshot], None]


# ── Poller ─────────────────────────────────────────────────────────────────


class MetricsPoller:
    """Samples all configured sources on a fixed interval."""

    def __init__(
        self,
        runner: CommandRunner,
        config: dict[str, Any] | None = None,
        interval: float | None = None,
        sampler: CounterSampler | None = None,
    ) -> None:
        self.runner = runner
        self.config = config if config is not None else DEFAULT_CONFIG
        self.interval = float(interval if interval is not None else self.config["refresh_interval"])
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        self.sampler = sampler if sampler is not None else CounterSampler()
        self._subscribers: list[Subscriber] = []
        self._cycle = 0
        self._cores: int | None = None
        self._nvidia_missing = False
        self._sensors_cache: str | None = None

    # ── Subscription ──────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        try:
            self._subscribers.remove(callback)
        except ValueError:
            pass

    def publish(self, snapshot: SystemSnapshot) -> None:
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                log.exception("subscriber %r failed", callback)

    # ── Scheduling ────────────────────────────────────────────────────

    def run(self, stop: threading.Event | None = None) -> None:
        """Poll and publish every ``interval`` seconds until *stop* is set."""
        stop = stop or threading.Event()
        while not stop.is_set():
            self.publish(self.poll_once())
            stop.wait(self.interval)

    def reset(self) -> None:
        """Forget every baseline; the next cycle warms up again."""
        self.sampler.reset()
        self._cycle = 0

    # ── One cycle ─────────────────────────────────────────────────────

    @property
    def cores(self) -> int:
        if self._cores is None:
            self._cores = read_core_count(self.runner)
        return self._cores

    def poll_once(self) -> SystemSnapshot:
        self._cycle += 1
        self._sensors_cache = None
        snap = SystemSnapshot(cycle=self._cycle, timestamp=time.time())
        sources = self.config.get("sources", DEFAULT_CONFIG["sources"])

        def guard(name: str, read: Callable[[], Any]) -> Any:
            if not sources.get(name, True):
                return None
            try:
                return read()
            except ObstatusError as e:
                log.warning("%s unavailable: %s", name, e)
                snap.errors[name] = str(e)
                return None

        snap.cpu_percent = guard("cpu", self._read_cpu)
        snap.memory_percent = guard("memory", self._read_memory)
        snap.disk_percent = guard("disk", self._read_disk)
        rates = guard("network", self._read_network)
        if rates is not None:
            cap = float(self.config.get("network_gauge_mbps", 100.0))
            snap.net_down_mbps, snap.net_up_mbps = rates
            snap.net_down_gauge = gauge_scale(rates[0], cap)
            snap.net_up_gauge = gauge_scale(rates[1], cap)
        snap.cpu_temp = guard("cpu_temp", self._read_cpu_temp)
        snap.gpu_temp = guard("gpu_temp", self._read_gpu_temp)
        snap.gpu_util = guard("gpu_util", self._read_gpu_util)
        snap.load_avg = guard("load", self._read_load)
        snap.top_processes = guard("processes", self._read_top_processes)
        for name, key in (("cpu", "cpu"), ("network", "net")):
            if name not in snap.errors and self.sampler.state(key) is SamplerState.SAMPLED_ONCE:
                snap.warming_up.append(name)
        return snap

    # ── Sources ───────────────────────────────────────────────────────

    def _read_cpu(self) -> int | None:
        out, _ = self.runner.run("cat", ["/proc/stat"])
        return self.sampler.sample_cpu(parsers.parse_proc_stat(out))

    def _read_memory(self) -> int:
        out, _ = self.runner.run("free", ["-m"])
        return parsers.parse_free_percent(out)

    def _read_disk(self) -> int:
        out, _ = self.runner.run("df", ["-h", "/"])
        return parsers.parse_df_percent(out)

    def _read_network(self) -> tuple[float, float] | None:
        out, _ = self.runner.run("cat", ["/proc/net/dev"])
        return self.sampler.sample_net(parsers.parse_net_dev(out), self.interval)

    def _read_load(self) -> tuple[float, float, float]:
        out, _ = self.runner.run("cat", ["/proc/loadavg"])
        return parsers.parse_loadavg(out)

    def _read_top_processes(self) -> list[TopProcess]:
        out, _ = self.runner.run("ps", PS_TOP_ARGS)
        limit = int(self.config.get("top_processes", 5))
        return parse_top_processes(out, self.cores, limit)

    def _sensors(self) -> str:
        # Shared by the CPU and GPU fallbacks within one cycle.
        if self._sensors_cache is None:
            out, _ = self.runner.run("sensors")
            self._sensors_cache = out
        return self._sensors_cache

    def _read_cpu_temp(self) -> int:
        try:
            out, _ = self.runner.run("cat", [THERMAL_ZONE])
            return parsers.parse_thermal_zone(out)
        except ObstatusError as e:
            log.debug("thermal zone unavailable: %s", e)
        try:
            return parsers.parse_sensors(self._sensors(), parsers.CPU_SENSOR_LABEL)
        except ObstatusError as e:
            log.debug("sensors CPU reading unavailable: %s", e)
        temp = _psutil_cpu_temp()
        if temp is None:
            raise ParseError("no CPU temperature source available")
        return temp

    def _nvidia(self, args: list[str]) -> int:
        if self._nvidia_missing:
            raise ParseError("nvidia-smi not available")
        try:
            result = self.runner.run("nvidia-smi", args)
        except CommandNotFoundError:
            self._nvidia_missing = True
            raise
        if result.returncode != 0:
            raise ParseError(f"nvidia-smi exited with status {result.returncode}")
        return parsers.parse_nvidia_value(result.stdout)

    def _read_gpu_temp(self) -> int:
        try:
            return self._nvidia(NVIDIA_TEMP_ARGS)
        except ObstatusError as e:
            log.debug("nvidia-smi temperature unavailable: %s", e)
        return parsers.parse_sensors(self._sensors(), parsers.GPU_SENSOR_LABEL)

    def _read_gpu_util(self) -> int:
        return self._nvidia(NVIDIA_UTIL_ARGS)


def _psutil_cpu_temp() -> int | None:
    """Last-resort CPU temperature from psutil's hwmon reader."""
    try:
        temps = psutil.sensors_temperatures()
    except AttributeError:
        return None
    if not temps:
        return None
    for chip in CPU_TEMP_CHIPS:
        if chip in temps and temps[chip]:
            return round(temps[chip][0].current)
    return None
