"""Tests for obstatus.parsers."""

import pytest

from obstatus.parsers import (
    CPU_SENSOR_LABEL,
    GPU_SENSOR_LABEL,
    parse_cpu_model,
    parse_df_percent,
    parse_free_percent,
    parse_free_total,
    parse_loadavg,
    parse_net_dev,
    parse_nproc,
    parse_nvidia_value,
    parse_proc_stat,
    parse_sensors,
    parse_thermal_zone,
)
from obstatus.runner import ParseError
from obstatus.sampler import CpuSample, NetSample

PROC_STAT = """\
cpu  4705 356 584 3699 23 0 23 0 0 0
cpu0 1393 280 170 930 8 0 8 0 0 0
intr 114930548 113199788 3 0 5 263 0 4 [... lots more numbers ...]
ctxt 1990473
"""

FREE_M = """\
               total        used        free      shared  buff/cache   available
Mem:           15880        6120        3203         874        6557        8431
Swap:           2047           0        2047
"""

FREE_H = """\
               total        used        free      shared  buff/cache   available
Mem:            15Gi       6.0Gi       3.1Gi       874Mi       6.4Gi       8.2Gi
Swap:          2.0Gi          0B       2.0Gi
"""

DF_H = """\
Filesystem      Size  Used Avail Use% Mounted on
/dev/nvme0n1p2  468G  201G  244G  46% /
"""

NET_DEV = """\
Inter-|   Receive                                                |  Transmit
 face |bytes    packets errs drop fifo frame compressed multicast|bytes    packets errs drop fifo colls carrier compressed
    lo: 9000000    1000    0    0    0     0          0         0  9000000    1000    0    0    0     0       0          0
  eth0: 1000000    2000    0    0    0     0          0         0   300000    1500    0    0    0     0       0          0
 wlan0:  250000     400    0    0    0     0          0         0    50000     300    0    0    0     0       0          0
"""

SENSORS = """\
coretemp-isa-0000
Adapter: ISA adapter
Package id 0:  +52.0°C  (high = +80.0°C, crit = +100.0°C)
Core 0:        +48.0°C  (high = +80.0°C, crit = +100.0°C)
Core 1:        +50.0°C  (high = +80.0°C, crit = +100.0°C)

amdgpu-pci-0300
Adapter: PCI adapter
edge:         +61.0°C  (crit = +100.0°C, hyst = -273.1°C)
"""


# ── /proc/stat ────────────────────────────────────────────────────────────


class TestProcStat:
    def test_aggregate_line(self) -> None:
        sample = parse_proc_stat(PROC_STAT)
        assert sample == CpuSample(idle=3699 + 23, total=4705 + 356 + 584 + 3699 + 23 + 23)

    def test_ignores_per_core_lines(self) -> None:
        text = "cpu0 1 1 1 1 1\ncpu  10 0 0 90 0\n"
        assert parse_proc_stat(text) == CpuSample(idle=90, total=100)

    def test_missing_line(self) -> None:
        with pytest.raises(ParseError):
            parse_proc_stat("intr 1 2 3\n")

    def test_non_numeric(self) -> None:
        with pytest.raises(ParseError):
            parse_proc_stat("cpu  1 2 x 4 5\n")

    def test_too_few_fields(self) -> None:
        with pytest.raises(ParseError):
            parse_proc_stat("cpu  1 2 3\n")


# ── free / df ─────────────────────────────────────────────────────────────


class TestFree:
    def test_percent(self) -> None:
        assert parse_free_percent(FREE_M) == round(6120 / 15880 * 100)

    def test_total_human(self) -> None:
        assert parse_free_total(FREE_H) == "15Gi"

    def test_no_mem_line(self) -> None:
        with pytest.raises(ParseError):
            parse_free_percent("Swap: 1 2 3\n")

    def test_zero_total(self) -> None:
        with pytest.raises(ParseError):
            parse_free_percent("Mem: 0 0 0\n")

    def test_garbage_columns(self) -> None:
        with pytest.raises(ParseError):
            parse_free_percent("Mem: lots some\n")


class TestDf:
    def test_use_percent(self) -> None:
        assert parse_df_percent(DF_H) == 46

    def test_header_only(self) -> None:
        with pytest.raises(ParseError):
            parse_df_percent("Filesystem Size Used Avail Use% Mounted on\n")

    def test_short_row(self) -> None:
        with pytest.raises(ParseError):
            parse_df_percent("header\n/dev/sda1 10G\n")

    def test_bad_percent(self) -> None:
        with pytest.raises(ParseError):
            parse_df_percent("header\n/dev/sda1 10G 5G 5G -  /\n")


# ── /proc/net/dev ─────────────────────────────────────────────────────────


class TestNetDev:
    def test_excludes_loopback(self) -> None:
        assert parse_net_dev(NET_DEV) == NetSample(rx_bytes=1_250_000, tx_bytes=350_000)

    def test_only_loopback(self) -> None:
        text = "\n".join(NET_DEV.splitlines()[:3]) + "\n"
        assert parse_net_dev(text) == NetSample(0, 0)

    def test_skips_short_lines(self) -> None:
        text = "h1\nh2\n  eth0: 10 20 30\n  eth1: 5 0 0 0 0 0 0 0 7 0 0 0 0 0 0 0\n"
        assert parse_net_dev(text) == NetSample(rx_bytes=5, tx_bytes=7)

    def test_name_glued_to_counter(self) -> None:
        text = "h1\nh2\neth0:123 0 0 0 0 0 0 0 456 0 0 0 0 0 0 0\n"
        assert parse_net_dev(text) == NetSample(rx_bytes=123, tx_bytes=456)


# ── temperatures ──────────────────────────────────────────────────────────


class TestTemperatures:
    def test_thermal_zone_millidegrees(self) -> None:
        assert parse_thermal_zone("47800\n") == 48

    def test_thermal_zone_empty(self) -> None:
        with pytest.raises(ParseError):
            parse_thermal_zone("")

    def test_sensors_cpu(self) -> None:
        assert parse_sensors(SENSORS, CPU_SENSOR_LABEL) == 48

    def test_sensors_gpu(self) -> None:
        assert parse_sensors(SENSORS, GPU_SENSOR_LABEL) == 61

    def test_sensors_missing_label(self) -> None:
        with pytest.raises(ParseError):
            parse_sensors("acpitz-acpi-0\ntemp1: +27.8°C\n", CPU_SENSOR_LABEL)

    def test_nvidia_value(self) -> None:
        assert parse_nvidia_value("56\n") == 56

    def test_nvidia_percent_suffix(self) -> None:
        assert parse_nvidia_value("37 %\n") == 37

    def test_nvidia_first_gpu_only(self) -> None:
        assert parse_nvidia_value("40\n71\n") == 40

    def test_nvidia_error_text(self) -> None:
        with pytest.raises(ParseError):
            parse_nvidia_value("NVIDIA-SMI has failed because it couldn't communicate\n")

    def test_nvidia_empty(self) -> None:
        with pytest.raises(ParseError):
            parse_nvidia_value("")


# ── misc ──────────────────────────────────────────────────────────────────


class TestMisc:
    def test_loadavg(self) -> None:
        assert parse_loadavg("0.52 0.58 0.59 2/1024 12345\n") == (0.52, 0.58, 0.59)

    def test_loadavg_short(self) -> None:
        with pytest.raises(ParseError):
            parse_loadavg("0.5\n")

    def test_nproc(self) -> None:
        assert parse_nproc("8\n") == 8

    @pytest.mark.parametrize("text", ["", "eight", "0"])
    def test_nproc_bad(self, text: str) -> None:
        with pytest.raises(ParseError):
            parse_nproc(text)

    def test_cpu_model(self) -> None:
        text = "processor\t: 0\nvendor_id\t: GenuineIntel\nmodel name\t: Intel(R) Core(TM) i7-8550U CPU @ 1.80GHz\n"
        assert parse_cpu_model(text) == "Intel(R) Core(TM) i7-8550U CPU @ 1.80GHz"

    def test_cpu_model_missing(self) -> None:
        with pytest.raises(ParseError):
            parse_cpu_model("processor\t: 0\n")
