"""Configuration loading for obstatus.

Every CLI reads the same TOML file. Lookup: the --config path if given,
else ~/.config/obstatus/config.toml, else the built-in DEFAULT_CONFIG.
"""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "refresh_interval": 10,
    "command_timeout": 0,
    "top_processes": 5,
    "network_gauge_mbps": 100.0,
    "sources": {
        "cpu": True,
        "memory": True,
        "disk": True,
        "network": True,
        "cpu_temp": True,
        "gpu_temp": True,
        "gpu_util": True,
        "load": True,
        "processes": True,
    },
    # Colour-coding only; nothing is alerted on.
    "thresholds": {
        "cpu_percent": {"warning": 70.0, "critical": 90.0},
        "memory_percent": {"warning": 80.0, "critical": 95.0},
        "disk_percent": {"warning": 85.0, "critical": 95.0},
        "cpu_temp": {"warning": 75.0, "critical": 90.0},
        "gpu_temp": {"warning": 75.0, "critical": 90.0},
    },
    "logs": {
        "since": "5 minutes ago",
        "lines": 200,
    },
}

_DEFAULT_PATH = Path.home() / ".config" / "obstatus" / "config.toml"


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Overlay wins; tables present in both are combined one level deep."""
    return {
        key: {**base[key], **overlay[key]}
        if isinstance(base.get(key), dict) and isinstance(overlay.get(key), dict)
        else overlay.get(key, base.get(key))
        for key in {**base, **overlay}
    }


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Return the defaults with the user's TOML merged on top.

    An explicit *path* (``--config``) must exist and parse, otherwise the
    process exits with status 1. Without one, ``~/.config/obstatus/config.toml``
    is used if present; a broken file there only earns a warning.
    """
    if path is None:
        if not _DEFAULT_PATH.is_file():
            return dict(DEFAULT_CONFIG)
        try:
            return _deep_merge(DEFAULT_CONFIG, _read_toml(_DEFAULT_PATH))
        except tomllib.TOMLDecodeError:
            print(f"obstatus: warning: ignoring invalid TOML in {_DEFAULT_PATH}", file=sys.stderr)
            return dict(DEFAULT_CONFIG)

    if not path.is_file():
        print(f"obstatus: config file not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        user_config = _read_toml(path)
    except tomllib.TOMLDecodeError as e:
        print(f"obstatus: invalid TOML in {path}: {e}", file=sys.stderr)
        raise SystemExit(1) from e
    return _deep_merge(DEFAULT_CONFIG, user_config)


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# obstatus configuration",
        "# Place this file at ~/.config/obstatus/config.toml",
        "",
    ]
    for key in ("refresh_interval", "command_timeout", "top_processes", "network_gauge_mbps"):
        lines.append(f"{key} = {_toml_value(DEFAULT_CONFIG[key])}")
    lines.append("")

    lines.append("[sources]")
    for source, enabled in DEFAULT_CONFIG["sources"].items():
        lines.append(f"{source} = {_toml_value(enabled)}")
    lines.append("")

    for metric, levels in DEFAULT_CONFIG["thresholds"].items():
        lines.append(f"[thresholds.{metric}]")
        lines.append(f"warning = {levels['warning']}")
        lines.append(f"critical = {levels['critical']}")
        lines.append("")

    lines.append("[logs]")
    for key, value in DEFAULT_CONFIG["logs"].items():
        lines.append(f"{key} = {_toml_value(value)}")

    return "\n".join(lines) + "\n"
