"""Tests for watchproc.render formatting helpers and the Renderer."""

from __future__ import annotations

import re
from datetime import datetime, timedelta

import pytest

from tests.fakes import FakeTerminal
from watchproc.layout import compute_layout
from watchproc.render import (
    E_MEDIUM,
    E_MILD,
    E_NONE,
    E_STRONG,
    FOOTER,
    Header,
    Renderer,
    build_title,
    cpu_emphasis,
    fmt_bytes,
    fmt_created,
    fmt_elapsed,
    fmt_elapsed_short,
    fmt_uptime,
    format_row,
    mem_emphasis,
    short_user,
)
from watchproc.snapshot import ProcessRecord
from watchproc.terminal import CLEAR_LINE, CLEAR_SCREEN, CLEAR_TO_END, CURSOR_HOME

_SGR = re.compile(r"\033\[[0-9;]*m")
NOW = datetime(2025, 7, 15, 12, 0, 0)


def _plain(text: str) -> str:
    return _SGR.sub("", text)


# ── fmt_bytes ──────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, "0B"),
        (512, "512B"),
        (1023, "1023B"),
        (1024, "1.0K"),
        (1536, "1.5K"),
        (1048576, "1.0M"),
        (int(2.5 * 1024**2), "2.5M"),
        (1073741824, "1.0G"),
        (3 * 1024**4, "3072.0G"),
    ],
)
def test_fmt_bytes(value: int, expected: str) -> None:
    assert fmt_bytes(value) == expected


# ── Time formatting ────────────────────────────────────────────────────────


class TestFmtCreated:
    def test_same_year(self) -> None:
        assert fmt_created(datetime(2025, 3, 4, 9, 7), NOW) == "03-04 09:07"

    def test_other_year(self) -> None:
        assert fmt_created(datetime(2023, 12, 31, 23, 59), NOW) == "23-12-31 23:59"

    def test_absent(self) -> None:
        assert fmt_created(None, NOW) == "-"


class TestFmtUptime:
    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(days=3, hours=4, minutes=5), "3d4h"),
            (timedelta(hours=2, minutes=5, seconds=9), "2h5m"),
            (timedelta(minutes=7, seconds=30), "7m"),
            (timedelta(seconds=42), "42s"),
            (timedelta(0), "0s"),
        ],
    )
    def test_units(self, delta: timedelta, expected: str) -> None:
        assert fmt_uptime(NOW - delta, NOW) == expected

    def test_absent(self) -> None:
        assert fmt_uptime(None, NOW) == "-"

    def test_future_clamped(self) -> None:
        assert fmt_uptime(NOW + timedelta(seconds=5), NOW) == "0s"


@pytest.mark.parametrize(
    ("seconds", "full", "short"),
    [
        (3, "3s", "3s"),
        (123, "2m03s", "2m03s"),
        (3723, "1h02m03s", "1h02m"),
    ],
)
def test_fmt_elapsed(seconds: float, full: str, short: str) -> None:
    assert fmt_elapsed(seconds) == full
    assert fmt_elapsed_short(seconds) == short


def test_short_user_strips_domain() -> None:
    assert short_user("CORP\\alice") == "alice"
    assert short_user("bob") == "bob"


# ── Emphasis tiers ─────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("pct", "tier"),
    [(0.0, E_NONE), (5.0, E_NONE), (5.1, E_MILD), (20.0, E_MILD), (20.5, E_MEDIUM), (50.0, E_MEDIUM), (99.0, E_STRONG)],
)
def test_cpu_emphasis(pct: float, tier: int) -> None:
    assert cpu_emphasis(pct) == tier


@pytest.mark.parametrize(
    ("pct", "tier"),
    [(0.5, E_NONE), (1.0, E_NONE), (1.5, E_MILD), (5.5, E_MEDIUM), (10.0, E_MEDIUM), (10.1, E_STRONG)],
)
def test_mem_emphasis(pct: float, tier: int) -> None:
    assert mem_emphasis(pct) == tier


# ── Title degradation ──────────────────────────────────────────────────────


class TestBuildTitle:
    def test_full_sentence_when_wide(self) -> None:
        plain, styled = build_title(200, 5, "chrome", 2.0, 4)
        assert plain == "WatchProc [5s] | Pattern: chrome | Interval: 2.0s | Found: 4 processes"
        assert _plain(styled) == plain

    def test_drops_processes_noun(self) -> None:
        full, _ = build_title(200, 5, "chrome", 2.0, 4)
        plain, _ = build_title(len(full) - 1, 5, "chrome", 2.0, 4)
        assert plain == "WatchProc [5s] | Pattern: chrome | Interval: 2.0s | Found: 4"

    def test_drops_interval(self) -> None:
        plain, _ = build_title(45, 5, "chrome", 2.0, 4)
        assert plain == "WatchProc [5s] | Pattern: chrome | Found: 4"

    def test_abbreviated_form_preferred_over_minimal(self) -> None:
        plain, styled = build_title(41, 3723, "firefox", 5.0, 12)
        assert plain == "WatchProc [1h02m] | P:firefox | Found: 12"
        assert _plain(styled) == plain

    def test_minimal_when_nothing_fits(self) -> None:
        plain, styled = build_title(5, 3723, "firefox", 5.0, 12)
        assert plain == "WatchProc | 12"
        assert _plain(styled) == plain

    def test_empty_pattern_shown_as_star(self) -> None:
        plain, _ = build_title(200, 0, "", 5.0, 1)
        assert "Pattern: *" in plain

    @pytest.mark.parametrize("width", range(10, 120, 7))
    def test_chosen_variant_fits(self, width: int) -> None:
        plain, _ = build_title(width, 3723, "python", 5.0, 321)
        assert len(plain) <= width or plain == "WatchProc | 321"


# ── Rows ───────────────────────────────────────────────────────────────────


def _record(**kw: object) -> ProcessRecord:
    base: dict[str, object] = {
        "pid": 4242,
        "name": "python3",
        "create_time": NOW - timedelta(hours=2, minutes=5),
        "cpu_percent": 12.34,
        "memory_percent": 1.5,
        "rss": 1536,
        "username": "CORP\\alice",
    }
    base.update(kw)
    return ProcessRecord(**base)  # type: ignore[arg-type]


class TestFormatRow:
    def test_fields(self) -> None:
        row = _plain(format_row(_record(), compute_layout(120), NOW))
        assert row.startswith("4242     python3")
        assert "   12.3%" in row
        assert "   1.50%" in row
        assert "1.5K" in row
        assert "07-15 09:55" in row
        assert "2h5m" in row
        assert "alice" in row and "CORP" not in row
        assert row.rstrip().endswith("active")

    @pytest.mark.parametrize("columns", [89, 120, 250])
    def test_width_matches_layout(self, columns: int) -> None:
        lay = compute_layout(columns)
        row = _plain(format_row(_record(name="x" * 100, username="u" * 100), lay, NOW))
        assert len(row) == lay.total

    def test_long_name_truncated(self) -> None:
        lay = compute_layout(89)
        row = _plain(format_row(_record(name="abcdefghijklmnopqrstuvwxyz"), lay, NOW))
        assert "abcdefghijkl " in row
        assert "abcdefghijklm" not in row

    def test_absent_create_time(self) -> None:
        row = _plain(format_row(_record(create_time=None), compute_layout(120), NOW))
        assert " - " in row

    def test_strong_cpu_is_red(self) -> None:
        row = format_row(_record(cpu_percent=75.0), compute_layout(120), NOW)
        assert "\033[1;31m   75.0%" in row


# ── Renderer ───────────────────────────────────────────────────────────────


class TestRenderer:
    def test_first_frame_clears_screen(self) -> None:
        term = FakeTerminal()
        Renderer(term).draw([_record()], compute_layout(120), None, full_clear=True, now=NOW)
        out = term.output
        assert out.startswith(CLEAR_SCREEN)
        assert CLEAR_TO_END in out
        assert FOOTER in out

    def test_steady_frame_only_homes_cursor(self) -> None:
        term = FakeTerminal()
        Renderer(term).draw([_record()], compute_layout(120), None, full_clear=False, now=NOW)
        assert CLEAR_SCREEN not in term.output
        assert term.output.startswith(CURSOR_HOME)

    def test_header_lines(self) -> None:
        term = FakeTerminal()
        header = Header(elapsed=5, pattern="py", interval=2.0)
        Renderer(term).draw([_record()], compute_layout(120), header, now=NOW)
        text = _plain(term.output)
        assert "WatchProc [5s] | Pattern: py" in text
        assert "PID" in text and "STATUS" in text

    def test_full_width_lines_erase_before_text(self) -> None:
        term = FakeTerminal()
        layout = compute_layout(120)
        header = Header(elapsed=5, pattern="py", interval=2.0)
        Renderer(term).draw([_record()], layout, header, now=NOW)
        rule = "-" * layout.total
        assert CLEAR_LINE + rule + "\n" in term.output
        assert rule + CLEAR_LINE not in term.output

    def test_header_suppressed(self) -> None:
        term = FakeTerminal()
        Renderer(term).draw([_record()], compute_layout(120), None, now=NOW)
        assert "WatchProc" not in term.output
        assert "STATUS" not in term.output

    def test_rows_in_snapshot_order(self) -> None:
        term = FakeTerminal()
        recs = [_record(pid=1, name="first"), _record(pid=2, name="second")]
        renderer = Renderer(term)
        renderer.draw(recs, compute_layout(120), None, now=NOW)
        text = _plain(term.output)
        assert text.index("first") < text.index("second")
        assert renderer.rows_drawn == 2

    def test_error_line(self) -> None:
        term = FakeTerminal()
        renderer = Renderer(term)
        renderer.draw_error("permission denied")
        assert "Error: permission denied" in _plain(term.output)
        assert CLEAR_TO_END in term.output
        assert renderer.rows_drawn == 0

    def test_static_has_no_cursor_moves(self) -> None:
        term = FakeTerminal()
        header = Header(elapsed=1, pattern="", interval=5.0)
        Renderer(term).print_static([_record()], compute_layout(120), header, now=NOW)
        assert CURSOR_HOME not in term.output
        assert CLEAR_SCREEN not in term.output
        assert "python3" in term.output

    def test_paused_line(self) -> None:
        term = FakeTerminal()
        Renderer(term).print_paused()
        assert "PAUSED" in term.output
