"""Process records and the snapshot pipeline (filter → sort → top-N)."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

# CPU% above which a process counts as active
ACTIVE_CPU_THRESHOLD = 0.1


class Status(Enum):
    """Coarse process state derived from CPU usage."""

    ACTIVE = "active"
    IDLE = "idle"


@dataclass(frozen=True)
class ProcessRecord:
    """One process as observed during a single collection cycle."""

    pid: int
    name: str
    create_time: datetime | None = None
    cpu_percent: float = 0.0  # 0.0 - 100.0 * core_count
    memory_percent: float = 0.0
    rss: int = 0  # Bytes
    username: str = ""
    cmdline: str = ""

    @property
    def status(self) -> Status:
        return Status.ACTIVE if self.cpu_percent > ACTIVE_CPU_THRESHOLD else Status.IDLE


# A snapshot is immutable once built; the next cycle replaces it wholesale.
Snapshot = tuple[ProcessRecord, ...]

_EPOCH = datetime.min


_SORT_FUNCS: dict[str, Callable[[ProcessRecord], Any]] = {
    "cpu": lambda p: p.cpu_percent,
    "mem": lambda p: p.memory_percent,
    "pid": lambda p: p.pid,
    "name": lambda p: p.name.lower(),
    # Absent creation times sort as the oldest
    "time": lambda p: p.create_time or _EPOCH,
}


def matches(name: str, pattern: str, exact: bool = False) -> bool:
    """Case-insensitive name match; an empty pattern matches everything."""
    if not pattern:
        return True
    name_lower = name.lower()
    pattern_lower = pattern.lower()
    if exact:
        return name_lower == pattern_lower
    return pattern_lower in name_lower


def filter_records(
    records: Iterable[ProcessRecord], pattern: str, exact: bool = False
) -> list[ProcessRecord]:
    """Drop records whose name does not match the filter."""
    return [r for r in records if matches(r.name, pattern, exact)]


def sort_records(
    records: Iterable[ProcessRecord], key: str, descending: bool = True
) -> list[ProcessRecord]:
    """Sort records by one of cpu, mem, pid, name or time.

    Descending order inverts the comparison rather than reversing the result,
    so records that tie keep their source order either way.
    """
    try:
        key_func = _SORT_FUNCS[key]
    except KeyError:
        raise ValueError(f"unknown sort key: {key!r}") from None
    return sorted(records, key=key_func, reverse=descending)


def build_snapshot(
    records: Iterable[ProcessRecord],
    pattern: str = "",
    exact: bool = False,
    sort_key: str = "cpu",
    descending: bool = True,
    top: int = 0,
) -> Snapshot:
    """Filter, sort and truncate a raw record set into a display-ordered snapshot."""
    procs = sort_records(filter_records(records, pattern, exact), sort_key, descending)
    if top > 0 and len(procs) > top:
        procs = procs[:top]
    return tuple(procs)
