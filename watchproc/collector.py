"""Process metric collection via psutil."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import psutil

from watchproc.snapshot import ProcessRecord, matches

logger = logging.getLogger(__name__)

# Attributes fetched per matching process
_ATTRS = [
    "pid",
    "name",
    "create_time",
    "cpu_percent",
    "memory_percent",
    "memory_info",
    "username",
    "cmdline",
]


class CollectionError(RuntimeError):
    """The process table could not be read this cycle."""


def _to_record(info: dict[str, Any]) -> ProcessRecord:
    """Build a record from a psutil info dict, with safe defaults for None."""
    create_ts = info.get("create_time")
    try:
        create_time = datetime.fromtimestamp(create_ts) if create_ts else None
    except (OverflowError, OSError, ValueError):
        create_time = None

    mem_info = info.get("memory_info")
    cmdline = info.get("cmdline") or []

    return ProcessRecord(
        pid=info.get("pid") or 0,
        name=info.get("name") or "",
        create_time=create_time,
        cpu_percent=info.get("cpu_percent") or 0.0,
        memory_percent=info.get("memory_percent") or 0.0,
        rss=mem_info.rss if mem_info else 0,
        username=info.get("username") or "",
        cmdline=" ".join(cmdline),
    )


class ProcessSource:
    """Reads the current process table.

    psutil caches Process objects across process_iter() calls, so CPU
    percentages are deltas since the previous call on the same source.
    The very first read reports 0% for every process.
    """

    def list(self, pattern: str = "", exact: bool = False) -> list[ProcessRecord]:
        """Return records for every process whose name matches *pattern*.

        Raises:
            CollectionError: If the process table cannot be enumerated.
        """
        records: list[ProcessRecord] = []
        try:
            procs = psutil.process_iter(["name"])
            for proc in procs:
                try:
                    name = proc.info.get("name") or ""
                    if not matches(name, pattern, exact):
                        continue
                    with proc.oneshot():
                        info = proc.as_dict(attrs=_ATTRS, ad_value=None)
                except (psutil.NoSuchProcess, psutil.ZombieProcess):
                    # Process died mid-poll
                    continue
                records.append(_to_record(info))
        except (psutil.Error, OSError) as e:
            raise CollectionError(f"cannot list processes: {e}") from e

        logger.debug("collected %d processes matching %r", len(records), pattern)
        return records
