"""Turning snapshots into styled terminal output."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from watchproc.layout import Layout, column_header
from watchproc.snapshot import ProcessRecord
from watchproc.terminal import RESET, Terminal

# ── Styles ──────────────────────────────────────────────────────────────────

BOLD_MAGENTA = "\033[1;35m"
BOLD_YELLOW = "\033[1;33m"
BOLD_GREEN = "\033[1;32m"
BOLD_RED = "\033[1;31m"
BOLD_WHITE = "\033[1;37m"
GREY = "\033[90m"
PAUSED_BADGE = "\033[1;43;30m"

# Emphasis tiers
E_NONE = 0
E_MILD = 1
E_MEDIUM = 2
E_STRONG = 3

_EMPHASIS_STYLE = {
    E_NONE: RESET,
    E_MILD: BOLD_GREEN,
    E_MEDIUM: BOLD_YELLOW,
    E_STRONG: BOLD_RED,
}

FOOTER = f"  {GREY}p:pause  q:quit{RESET}"
PAUSED_LINE = f"  {PAUSED_BADGE} PAUSED {RESET}  {GREY}p:resume  q:quit{RESET}"


def _tier(value: float, strong: float, medium: float, mild: float) -> int:
    if value > strong:
        return E_STRONG
    if value > medium:
        return E_MEDIUM
    if value > mild:
        return E_MILD
    return E_NONE


def cpu_emphasis(pct: float) -> int:
    return _tier(pct, 50.0, 20.0, 5.0)


def mem_emphasis(pct: float) -> int:
    return _tier(pct, 10.0, 5.0, 1.0)


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_bytes(n: int) -> str:
    """Compact byte count with binary prefixes: 0B, 1.5K, 1.0M, 1.0G."""
    if n < 1024:
        return f"{n}B"
    v = float(n)
    for unit in ("K", "M"):
        v /= 1024
        if v < 1024:
            return f"{v:.1f}{unit}"
    return f"{v / 1024:.1f}G"


def fmt_created(ts: datetime | None, now: datetime | None = None) -> str:
    """Creation time as MM-DD HH:MM this year, YY-MM-DD HH:MM otherwise."""
    if ts is None:
        return "-"
    now = now or datetime.now()
    if ts.year == now.year:
        return ts.strftime("%m-%d %H:%M")
    return ts.strftime("%y-%m-%d %H:%M")


def fmt_uptime(ts: datetime | None, now: datetime | None = None) -> str:
    """Time since *ts* as its two largest units: 3d4h, 2h5m, 7m or 42s."""
    if ts is None:
        return "-"
    now = now or datetime.now()
    secs = max(0, int((now - ts).total_seconds()))
    days, rem = divmod(secs, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days > 0:
        return f"{days}d{hours}h"
    if hours > 0:
        return f"{hours}h{minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{secs}s"


def fmt_elapsed(seconds: float) -> str:
    """Dashboard running time: 1h02m03s, 2m03s or 3s."""
    secs = int(seconds)
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}h{m:02d}m{s:02d}s"
    if m > 0:
        return f"{m}m{s:02d}s"
    return f"{s}s"


def fmt_elapsed_short(seconds: float) -> str:
    """Like fmt_elapsed, but drops seconds once an hour has passed."""
    secs = int(seconds)
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h}h{m:02d}m"
    if m > 0:
        return f"{m}m{s:02d}s"
    return f"{s}s"


def short_user(username: str) -> str:
    """Strip a DOMAIN\\ prefix from Windows account names."""
    return username.rsplit("\\", 1)[-1]


def _fit(text: str, width: int) -> str:
    """Pad or truncate *text* to exactly *width* characters."""
    return f"{text[:width]:<{width}s}"


# ── Title and rows ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Header:
    """What the title line reports besides the match count."""

    elapsed: float
    pattern: str
    interval: float


def build_title(
    width: int, elapsed: float, pattern: str, interval: float, count: int
) -> tuple[str, str]:
    """Pick the most detailed title that fits *width*.

    Returns (plain, styled); the plain text is what gets measured.
    """
    el = fmt_elapsed(elapsed)
    el_short = fmt_elapsed_short(elapsed)
    pat = pattern or "*"
    name = f"{BOLD_MAGENTA}WatchProc{RESET}"
    y_el = f"[{BOLD_YELLOW}{el}{RESET}]"
    y_pat = f"{BOLD_YELLOW}{pat}{RESET}"
    g_count = f"{BOLD_GREEN}{count}{RESET}"

    variants = [
        (
            f"WatchProc [{el}] | Pattern: {pat} | Interval: {interval:.1f}s | Found: {count} processes",
            f"{name} {y_el} | Pattern: {y_pat} | Interval: {interval:.1f}s | Found: {g_count} processes",
        ),
        (
            f"WatchProc [{el}] | Pattern: {pat} | Interval: {interval:.1f}s | Found: {count}",
            f"{name} {y_el} | Pattern: {y_pat} | Interval: {interval:.1f}s | Found: {g_count}",
        ),
        (
            f"WatchProc [{el}] | Pattern: {pat} | Found: {count}",
            f"{name} {y_el} | Pattern: {y_pat} | Found: {g_count}",
        ),
        (
            f"WatchProc [{el_short}] | P:{pat} | Found: {count}",
            f"{name} [{BOLD_YELLOW}{el_short}{RESET}] | P:{y_pat} | Found: {g_count}",
        ),
    ]
    for plain, styled in variants:
        if len(plain) <= width:
            return plain, styled
    return f"WatchProc | {count}", f"{name} | {g_count}"


def format_row(proc: ProcessRecord, layout: Layout, now: datetime | None = None) -> str:
    """One styled table row, exactly layout.total visible characters wide."""
    now = now or datetime.now()
    cpu_style = _EMPHASIS_STYLE[cpu_emphasis(proc.cpu_percent)]
    mem_style = _EMPHASIS_STYLE[mem_emphasis(proc.memory_percent)]
    return (
        f"{proc.pid:<8d} {_fit(proc.name, layout.name)} "
        f"{cpu_style}{proc.cpu_percent:7.1f}%{RESET} "
        f"{mem_style}{proc.memory_percent:7.2f}%{RESET}  "
        f"{_fit(fmt_bytes(proc.rss), 10)} "
        f"{_fit(fmt_created(proc.create_time, now), layout.created)} "
        f"{_fit(fmt_uptime(proc.create_time, now), 8)} "
        f"{_fit(short_user(proc.username), layout.user)} "
        f"{_fit(proc.status.value, 8)}"
    )


def header_lines(header: Header, layout: Layout, count: int) -> list[str]:
    """Title, rule and column header lines."""
    _, title = build_title(layout.total, header.elapsed, header.pattern, header.interval, count)
    return [
        title,
        "-" * layout.total,
        f"{BOLD_WHITE}{column_header(layout)}{RESET}",
    ]


# ── Renderer ───────────────────────────────────────────────────────────────


class Renderer:
    """Draws frames onto a terminal.

    Live frames redraw in place from the top-left corner and clear whatever
    the previous frame left below them. Static tables are plain scrolling
    output for the normal screen buffer.
    """

    def __init__(self, terminal: Terminal) -> None:
        self._term = terminal
        self.rows_drawn = 0

    def _line(self, text: str) -> None:
        # Erase first: a full-width line leaves the cursor pending a wrap,
        # where ESC[K would wipe the last cell
        self._term.clear_line()
        self._term.write(text + "\n")

    def _begin(self, full_clear: bool) -> None:
        if full_clear:
            self._term.clear_screen()
        self._term.move_cursor_home()

    def _finish(self) -> None:
        # Rows left over from a longer previous frame
        self._term.clear_to_end()
        self._term.write("\n")
        self._term.clear_line()
        self._term.write(FOOTER)
        self._term.flush()

    def draw(
        self,
        snapshot: Iterable[ProcessRecord],
        layout: Layout,
        header: Header | None,
        full_clear: bool = False,
        now: datetime | None = None,
    ) -> None:
        procs = list(snapshot)
        now = now or datetime.now()
        self._begin(full_clear)
        if header is not None:
            for line in header_lines(header, layout, len(procs)):
                self._line(line)
        for proc in procs:
            self._line(format_row(proc, layout, now))
        self.rows_drawn = len(procs)
        self._finish()

    def draw_error(self, message: str, full_clear: bool = False) -> None:
        self._begin(full_clear)
        self._line(f"{BOLD_RED}Error:{RESET} {message}")
        self.rows_drawn = 0
        self._finish()

    def print_static(
        self,
        snapshot: Iterable[ProcessRecord],
        layout: Layout,
        header: Header | None,
        now: datetime | None = None,
    ) -> None:
        procs = list(snapshot)
        now = now or datetime.now()
        lines: list[str] = []
        if header is not None:
            lines.extend(header_lines(header, layout, len(procs)))
        lines.extend(format_row(p, layout, now) for p in procs)
        for line in lines:
            self._term.write(line + "\n")
        self._term.flush()

    def print_paused(self) -> None:
        self._term.write("\n" + PAUSED_LINE + "\n")
        self._term.flush()
