"""Session control: the refresh loop, key/signal listeners and shutdown.

Three threads share one :class:`SharedDisplayState`:

* the main thread runs :meth:`SessionController.run`, one cycle per interval;
* a :class:`KeyListener` turns keystrokes into pause/resume/quit;
* a :class:`SignalListener` turns SIGINT/SIGTERM into quit.

Every render and every transition happens under ``SharedDisplayState.lock``.
Process collection happens before the lock is taken, so a slow psutil read
never blocks a key press.
"""

from __future__ import annotations

import logging
import queue
import signal
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from types import FrameType
from typing import Any

from watchproc.collector import CollectionError, ProcessSource
from watchproc.config import Settings
from watchproc.layout import compute_layout
from watchproc.render import Header, Renderer
from watchproc.snapshot import Snapshot, build_snapshot
from watchproc.terminal import Terminal, TerminalCapabilityError

logger = logging.getLogger(__name__)

PAUSE_KEYS = frozenset(b"pP ")
QUIT_KEYS = frozenset(b"qQ\x03")  # 0x03 is Ctrl+C with ISIG off
KEY_POLL_TIMEOUT = 0.1
TERMINATED_MESSAGE = "WatchProc terminated."


class SessionState(Enum):
    RUNNING = "running"
    PAUSED = "paused"
    TERMINATING = "terminating"


@dataclass
class SharedDisplayState:
    """Everything the three threads share, behind a single lock."""

    snapshot: Snapshot = ()
    columns: int = 0
    rows: int = 0
    state: SessionState = SessionState.RUNNING
    force_redraw: bool = True
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


def _attempt(step: str, action: Callable[[], Any]) -> None:
    """Run one teardown step, logging instead of raising on terminal errors."""
    try:
        action()
    except (TerminalCapabilityError, OSError, ValueError) as e:
        logger.debug("shutdown step %s failed: %s", step, e)


class ShutdownSequencer:
    """Restores the terminal and prints the final view, exactly once.

    Calls racing in from the key listener, the signal listener and the main
    thread all go through the same latch; only the first one does any work.
    """

    def __init__(
        self,
        terminal: Terminal,
        display: SharedDisplayState,
        print_snapshot: Callable[[Snapshot], None],
        on_exit: Callable[[], None],
    ) -> None:
        self._term = terminal
        self._display = display
        self._print_snapshot = print_snapshot
        self._on_exit = on_exit
        self._latch = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def __call__(self) -> bool:
        """Run the teardown. Returns False if it had already run."""
        with self._latch:
            if self._done:
                return False
            self._done = True

        with self._display.lock:
            was_paused = self._display.state is SessionState.PAUSED
            self._display.state = SessionState.TERMINATING
            snapshot = self._display.snapshot

            _attempt("restore mode", self._term.restore_mode)
            _attempt("reset style", self._term.reset_style)
            if not was_paused:
                _attempt("leave alt screen", self._term.leave_alt_screen)
                _attempt("print snapshot", lambda: self._print_snapshot(snapshot))
            _attempt("print message", lambda: self._term.write(TERMINATED_MESSAGE + "\n"))
            _attempt("flush", self._term.flush)

        logger.info("session terminated")
        self._on_exit()
        return True


class SessionController:
    """Owns the shared display state and drives the refresh loop."""

    def __init__(
        self,
        settings: Settings,
        terminal: Terminal,
        source: ProcessSource | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.terminal = terminal
        self.source = source if source is not None else ProcessSource()
        self.display = SharedDisplayState()
        self.renderer = Renderer(terminal)
        self._clock = clock
        self._started = clock()
        self._stopped = threading.Event()
        self._wakeup = threading.Event()
        self.shutdown = ShutdownSequencer(
            terminal, self.display, self._print_static, self._stop
        )

    # ── State queries ───────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        with self.display.lock:
            return self.display.state

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def _header(self) -> Header | None:
        if self.settings.no_header:
            return None
        return Header(
            elapsed=self._clock() - self._started,
            pattern=self.settings.pattern,
            interval=self.settings.interval,
        )

    def _print_static(self, snapshot: Snapshot) -> None:
        columns, _ = self.terminal.query_size()
        self.renderer.print_static(snapshot, compute_layout(columns), self._header())

    # ── Refresh cycle ───────────────────────────────────────────────────

    def collect(self) -> Snapshot:
        """Read the metric source and build this cycle's snapshot."""
        s = self.settings
        records = self.source.list(s.pattern, s.exact)
        return build_snapshot(records, s.pattern, s.exact, s.sort, s.descending, s.top)

    def tick(self) -> bool:
        """Run one refresh cycle. Returns True if a frame was drawn."""
        if self.state is not SessionState.RUNNING:
            return False
        # Collect outside the lock; psutil can be slow. State is checked
        # again under the lock since a key may arrive meanwhile.
        error: CollectionError | None = None
        snapshot: Snapshot = ()
        try:
            snapshot = self.collect()
        except CollectionError as e:
            logger.warning("collection failed: %s", e)
            error = e
        columns, rows = self.terminal.query_size()

        with self.display.lock:
            d = self.display
            if d.state is not SessionState.RUNNING:
                return False
            resized = (columns, rows) != (d.columns, d.rows)
            full_clear = d.force_redraw or resized
            if resized:
                logger.debug("terminal resized to %dx%d", columns, rows)

            if error is not None:
                self.renderer.draw_error(str(error), full_clear)
            else:
                layout = compute_layout(columns)
                self.renderer.draw(snapshot, layout, self._header(), full_clear)
                d.snapshot = snapshot
            d.columns, d.rows = columns, rows
            d.force_redraw = False
        return True

    def run(self) -> int:
        """Refresh on a fixed-rate schedule until shutdown.

        Deadlines are spaced ``interval`` apart from the first cycle, so the
        time spent collecting and drawing does not push later cycles back.
        A wakeup (resume) runs an extra cycle without moving the schedule.
        Returns the process exit status.
        """
        interval = self.settings.interval
        next_tick = self._clock()
        while not self._stopped.is_set():
            self.tick()
            now = self._clock()
            if now >= next_tick:
                # Deadlines missed by a slow cycle are dropped, the phase is kept
                next_tick += ((now - next_tick) // interval + 1) * interval
            self._wakeup.wait(next_tick - now)
            self._wakeup.clear()
        return 0

    def _stop(self) -> None:
        self._stopped.set()
        self._wakeup.set()

    # ── Transitions ─────────────────────────────────────────────────────

    def toggle_pause(self) -> SessionState:
        """Running ↔ Paused. Returns the resulting state."""
        with self.display.lock:
            d = self.display
            if d.state is SessionState.RUNNING:
                d.state = SessionState.PAUSED
                snapshot = d.snapshot
                self.terminal.leave_alt_screen()
                self._print_static(snapshot)
                self.renderer.print_paused()
                logger.info("paused")
            elif d.state is SessionState.PAUSED:
                d.state = SessionState.RUNNING
                d.force_redraw = True
                self.terminal.enter_alt_screen()
                self.terminal.flush()
                self._wakeup.set()
                logger.info("resumed")
            return d.state

    def quit(self) -> bool:
        """Start teardown; a no-op if it already ran."""
        return self.shutdown()

    def handle_key(self, key: int | None) -> None:
        if key is None:
            return
        if key in PAUSE_KEYS:
            self.toggle_pause()
        elif key in QUIT_KEYS:
            self.quit()


class KeyListener(threading.Thread):
    """Reads single keystrokes and forwards them to the controller."""

    def __init__(self, controller: SessionController, timeout: float = KEY_POLL_TIMEOUT) -> None:
        super().__init__(daemon=True, name="KeyListener")
        self._controller = controller
        self._timeout = timeout

    def run(self) -> None:
        while not self._controller.stopped:
            key = self._controller.terminal.read_key(self._timeout)
            if key is not None:
                self._controller.handle_key(key)


class SignalListener(threading.Thread):
    """Turns SIGINT/SIGTERM into a quit request.

    Python runs signal handlers on the main thread, so the handler only
    records the signal; this thread waits for it and starts the shutdown.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, controller: SessionController) -> None:
        super().__init__(daemon=True, name="SignalListener")
        self._controller = controller
        self._received: queue.SimpleQueue[int] = queue.SimpleQueue()
        self._previous: dict[int, Any] = {}

    def install(self) -> None:
        """Install handlers; must be called from the main thread."""
        for sig in self.SIGNALS:
            self._previous[sig] = signal.signal(sig, self._handle)

    def restore(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        # SimpleQueue.put is safe to call from a signal handler
        self._received.put(signum)

    def run(self) -> None:
        signum = self._received.get()
        logger.info("received signal %d", signum)
        self._controller.quit()
