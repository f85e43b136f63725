"""Column layout that adapts to the terminal width."""

from __future__ import annotations

from dataclasses import dataclass

# PID(8) CPU%(8) MEM%(8) MEM(10) UPTIME(8) STATUS(8) plus the separators
# around them, including the gaps after NAME, CREATED and USER.
FIXED_WIDTH = 59

MIN_NAME = 12
MAX_NAME = 30
MIN_CREATED = 10
MAX_CREATED = 20
MIN_USER = 8

MIN_TOTAL = FIXED_WIDTH + MIN_NAME + MIN_CREATED + MIN_USER
DEFAULT_COLUMNS = 80


@dataclass(frozen=True)
class Layout:
    """Widths of the variable columns and of the whole table."""

    name: int
    created: int
    user: int
    total: int


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(value, hi))


def compute_layout(columns: int) -> Layout:
    """Compute column widths for a terminal *columns* wide.

    Non-positive widths (e.g. output redirected to a file) use the default
    width; anything narrower than the minimum table is clamped up to it, so
    the table may overflow very narrow terminals.
    """
    if columns <= 0:
        columns = DEFAULT_COLUMNS
    total = max(columns, MIN_TOTAL)

    remaining = total - FIXED_WIDTH
    name = _clamp(remaining * 45 // 100, MIN_NAME, MAX_NAME)
    created = _clamp(remaining * 30 // 100, MIN_CREATED, MAX_CREATED)

    # Give width back to USER so the row always sums to the total
    shortfall = MIN_USER - (remaining - name - created)
    if shortfall > 0:
        give = min(shortfall, name - MIN_NAME)
        name -= give
        shortfall -= give
    if shortfall > 0:
        created -= min(shortfall, created - MIN_CREATED)
    user = remaining - name - created

    return Layout(name=name, created=created, user=user, total=total)


def column_header(layout: Layout) -> str:
    """Plain text of the column header row."""
    return (
        f"{'PID':<8s} {'NAME':<{layout.name}s} {'CPU%':>8s} {'MEM%':>8s}  "
        f"{'MEM':<10s} {'CREATED':<{layout.created}s} {'UPTIME':<8s} "
        f"{'USER':<{layout.user}s} {'STATUS':<8s}"
    )
