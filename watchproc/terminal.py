"""Terminal capabilities: ANSI output, raw input mode, size and key reads.

The dashboard only talks to a :class:`Terminal`. Platform differences live in
the two subclasses, chosen once by :func:`open_terminal`.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from typing import Any, TextIO

logger = logging.getLogger(__name__)

# ── ANSI helpers ────────────────────────────────────────────────────────────

CSI = "\033["
CLEAR_SCREEN = f"{CSI}2J"
CURSOR_HOME = f"{CSI}H"
CLEAR_TO_END = f"{CSI}J"
CLEAR_LINE = f"{CSI}K"
ALT_SCREEN_ON = f"{CSI}?1049h"
ALT_SCREEN_OFF = f"{CSI}?1049l"
RESET = f"{CSI}0m"

FALLBACK_SIZE = (80, 24)


class TerminalCapabilityError(OSError):
    """A raw-mode toggle failed; the dashboard keeps running without it."""


class Terminal:
    """ANSI/VT terminal writing to *stream*.

    The base class has no raw input support: :meth:`read_key` just waits out
    the timeout. It is what non-interactive sessions get.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._out = stream if stream is not None else sys.stdout

    # Output

    def write(self, text: str) -> None:
        self._out.write(text)

    def flush(self) -> None:
        self._out.flush()

    def clear_screen(self) -> None:
        self.write(CLEAR_SCREEN + CURSOR_HOME)

    def move_cursor_home(self) -> None:
        self.write(CURSOR_HOME)

    def clear_to_end(self) -> None:
        self.write(CLEAR_TO_END)

    def clear_line(self) -> None:
        self.write(CLEAR_LINE)

    def enter_alt_screen(self) -> None:
        self.write(ALT_SCREEN_ON)

    def leave_alt_screen(self) -> None:
        self.write(ALT_SCREEN_OFF)

    def reset_style(self) -> None:
        self.write(RESET)

    def query_size(self) -> tuple[int, int]:
        """Return (columns, rows), or 80x24 when the size is unknown."""
        try:
            size = os.get_terminal_size(self._out.fileno())
        except (OSError, ValueError, AttributeError):
            return FALLBACK_SIZE
        if size.columns <= 0 or size.lines <= 0:
            return FALLBACK_SIZE
        return size.columns, size.lines

    # Input

    def enable_raw_mode(self) -> None:
        """Deliver keystrokes unbuffered and unechoed."""

    def restore_mode(self) -> None:
        """Put the input mode back the way it was before enable_raw_mode()."""

    def read_key(self, timeout: float = 0.1) -> int | None:
        """Return one key byte, or None if nothing arrived within *timeout*."""
        time.sleep(timeout)
        return None


class PosixTerminal(Terminal):
    """termios-based raw mode with select() key polling."""

    def __init__(self, stream: TextIO | None = None, stdin: TextIO | None = None) -> None:
        super().__init__(stream)
        self._in = stdin if stdin is not None else sys.stdin
        self._fd: int | None = None
        self._saved: list[Any] | None = None

    def enable_raw_mode(self) -> None:
        import termios
        import tty

        try:
            fd = self._in.fileno()
        except (OSError, ValueError, AttributeError) as e:
            raise TerminalCapabilityError(f"stdin has no file descriptor: {e}") from e
        if not os.isatty(fd):
            raise TerminalCapabilityError("stdin is not a terminal")
        try:
            self._saved = termios.tcgetattr(fd)
            self._fd = fd
            tty.setcbreak(fd)  # immediate char, no Enter, no echo
        except (termios.error, OSError) as e:
            raise TerminalCapabilityError(f"cannot enable raw mode: {e}") from e

    def restore_mode(self) -> None:
        import termios

        if self._fd is None or self._saved is None:
            return
        fd, saved = self._fd, self._saved
        self._fd = None
        self._saved = None
        try:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        except (termios.error, OSError) as e:
            raise TerminalCapabilityError(f"cannot restore terminal mode: {e}") from e

    def read_key(self, timeout: float = 0.1) -> int | None:
        import select

        fd = self._fd
        if fd is None:
            return super().read_key(timeout)
        try:
            ready, _, _ = select.select([fd], [], [], timeout)
            if not ready:
                return None
            data = os.read(fd, 1)
        except (OSError, ValueError):
            return None
        return data[0] if data else None


class WindowsTerminal(Terminal):
    """Console API raw mode with msvcrt key polling."""

    _STD_INPUT_HANDLE = -10
    _STD_OUTPUT_HANDLE = -11
    _ENABLE_LINE_INPUT = 0x0002
    _ENABLE_ECHO_INPUT = 0x0004
    _ENABLE_VIRTUAL_TERMINAL_PROCESSING = 0x0004

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__(stream)
        self._saved_modes: list[tuple[Any, int]] = []

    def _console_mode(self, which: int) -> tuple[Any, int]:
        import ctypes

        kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
        handle = kernel32.GetStdHandle(which)
        mode = ctypes.c_uint32()
        if not kernel32.GetConsoleMode(handle, ctypes.byref(mode)):
            raise TerminalCapabilityError(f"GetConsoleMode failed for handle {which}")
        return handle, mode.value

    def _set_console_mode(self, handle: Any, mode: int) -> None:
        import ctypes

        if not ctypes.windll.kernel32.SetConsoleMode(handle, mode):  # type: ignore[attr-defined]
            raise TerminalCapabilityError("SetConsoleMode failed")

    def enable_raw_mode(self) -> None:
        out_handle, out_mode = self._console_mode(self._STD_OUTPUT_HANDLE)
        in_handle, in_mode = self._console_mode(self._STD_INPUT_HANDLE)
        self._saved_modes = [(out_handle, out_mode), (in_handle, in_mode)]
        self._set_console_mode(out_handle, out_mode | self._ENABLE_VIRTUAL_TERMINAL_PROCESSING)
        self._set_console_mode(
            in_handle, in_mode & ~(self._ENABLE_LINE_INPUT | self._ENABLE_ECHO_INPUT)
        )

    def restore_mode(self) -> None:
        saved, self._saved_modes = self._saved_modes, []
        failed = False
        for handle, mode in saved:
            try:
                self._set_console_mode(handle, mode)
            except TerminalCapabilityError:
                failed = True
        if failed:
            raise TerminalCapabilityError("cannot restore console mode")

    def read_key(self, timeout: float = 0.1) -> int | None:
        import msvcrt

        deadline = time.monotonic() + timeout
        while not msvcrt.kbhit():  # type: ignore[attr-defined]
            if time.monotonic() >= deadline:
                return None
            time.sleep(0.01)
        data = msvcrt.getch()  # type: ignore[attr-defined]
        return data[0] if data else None


def open_terminal(stream: TextIO | None = None) -> Terminal:
    """Pick the terminal implementation for this platform."""
    if os.name == "nt":
        return WindowsTerminal(stream)
    return PosixTerminal(stream)
