"""Configuration loading for watchproc.

Loads settings from TOML config files with sensible defaults, then lets the
command line override individual keys.
Search order: explicit --config path → ~/.config/watchproc/config.toml → defaults only.
"""

from __future__ import annotations

import math
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

SORT_KEYS: tuple[str, ...] = ("cpu", "mem", "pid", "name", "time")

DEFAULT_CONFIG: dict[str, Any] = {
    "interval": 5.0,
    "pattern": "",
    "exact": False,
    "sort": "cpu",
    "descending": True,
    "top": 0,
    "no_header": False,
}

_DEFAULT_PATH = Path.home() / ".config" / "watchproc" / "config.toml"


class ConfigurationError(ValueError):
    """Raised when the merged configuration cannot drive the dashboard."""


@dataclass(frozen=True)
class Settings:
    """Validated dashboard settings."""

    interval: float = 5.0
    pattern: str = ""
    exact: bool = False
    sort: str = "cpu"
    descending: bool = True
    top: int = 0
    no_header: bool = False


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base, skipping keys whose overlay value is None."""
    merged = dict(base)
    for key, value in overlay.items():
        if value is not None:
            merged[key] = value
    return merged


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    An explicit *path* (from --config) must exist and parse. The default
    location is optional; a broken file there is reported and skipped.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed.
    """
    if path is None:
        if not _DEFAULT_PATH.is_file():
            return dict(DEFAULT_CONFIG)
        try:
            return _merge(DEFAULT_CONFIG, _read_toml(_DEFAULT_PATH))
        except (tomllib.TOMLDecodeError, OSError) as e:
            print(
                f"watchproc: warning: ignoring invalid TOML in {_DEFAULT_PATH}: {e}",
                file=sys.stderr,
            )
            return dict(DEFAULT_CONFIG)

    if not path.is_file():
        print(f"watchproc: config file not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        user_config = _read_toml(path)
    except (tomllib.TOMLDecodeError, OSError) as e:
        print(f"watchproc: cannot read config {path}: {e}", file=sys.stderr)
        raise SystemExit(1) from e
    return _merge(DEFAULT_CONFIG, user_config)


def _flag(merged: dict[str, Any], key: str) -> bool:
    value = merged[key]
    if not isinstance(value, bool):
        raise ConfigurationError(f"{key} must be true or false, got {value!r}")
    return value


def build_settings(config: dict[str, Any], overrides: dict[str, Any] | None = None) -> Settings:
    """Turn a merged config dict (plus CLI overrides) into validated Settings.

    Raises:
        ConfigurationError: On a non-positive or non-finite interval, a
            negative top-N cap, an unknown sort key or a non-boolean flag.
    """
    merged = _merge(config, overrides or {})

    try:
        interval = float(merged["interval"])
        top = int(merged["top"])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid numeric setting: {e}") from e

    # nan compares False against everything, so test finiteness first
    if not math.isfinite(interval) or interval <= 0:
        raise ConfigurationError(
            f"interval must be a finite number greater than 0, got {interval}"
        )
    if top < 0:
        raise ConfigurationError("top must be 0 (unbounded) or a positive count")

    sort = str(merged["sort"]).lower()
    if sort not in SORT_KEYS:
        raise ConfigurationError(
            f"unknown sort key {merged['sort']!r} (choose from {', '.join(SORT_KEYS)})"
        )

    return Settings(
        interval=interval,
        pattern=str(merged["pattern"] or ""),
        exact=_flag(merged, "exact"),
        sort=sort,
        descending=_flag(merged, "descending"),
        top=top,
        no_header=_flag(merged, "no_header"),
    )


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# watchproc configuration",
        "# Place this file at ~/.config/watchproc/config.toml",
        "",
        "# Seconds between refreshes",
        f"interval = {DEFAULT_CONFIG['interval']}",
        "# Process name filter (empty = all processes)",
        f'pattern = "{DEFAULT_CONFIG["pattern"]}"',
        f"exact = {str(DEFAULT_CONFIG['exact']).lower()}",
        "# One of: " + ", ".join(SORT_KEYS),
        f'sort = "{DEFAULT_CONFIG["sort"]}"',
        f"descending = {str(DEFAULT_CONFIG['descending']).lower()}",
        "# Show only the first N processes (0 = all)",
        f"top = {DEFAULT_CONFIG['top']}",
        f"no_header = {str(DEFAULT_CONFIG['no_header']).lower()}",
    ]
    return "\n".join(lines) + "\n"
