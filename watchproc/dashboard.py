"""Live process dashboard, the watchproc entry point.

Shows matching processes in a colour-coded table that redraws in place on
the alternate screen. ``p``/space pauses (the last table stays on the normal
screen), ``q`` or Ctrl+C quits and leaves the final table behind.

Usage:
    uv run watchproc
    uv run watchproc chrome --sort mem --top 10
    uv run watchproc -p nginx -e --interval 1
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from watchproc.config import (
    SORT_KEYS,
    ConfigurationError,
    Settings,
    build_settings,
    dump_default_config,
    load_config,
)
from watchproc.session import KeyListener, SessionController, SignalListener
from watchproc.terminal import Terminal, TerminalCapabilityError, open_terminal

logger = logging.getLogger("watchproc")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(threadName)s] %(message)s"


def configure_logging(log_file: Path | None) -> None:
    """Log to *log_file* if given; never to the screen the dashboard owns."""
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.propagate = False
    if log_file is None:
        logger.addHandler(logging.NullHandler())
        return
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watchproc",
        description="Live, filterable process monitor for the terminal.",
        epilog=(
            "Keys while running: p or Space pause/resume, "
            "q quit (the last snapshot stays on screen)."
        ),
    )
    parser.add_argument(
        "pattern_arg",
        nargs="?",
        default=None,
        metavar="PATTERN",
        help="Process name pattern (same as --pattern)",
    )
    parser.add_argument(
        "-n",
        "--interval",
        type=float,
        default=None,
        help="Seconds between refreshes (default: 5.0)",
    )
    parser.add_argument(
        "-p",
        "--pattern",
        default=None,
        help="Process name pattern, case-insensitive substring match",
    )
    parser.add_argument(
        "-e",
        "--exact",
        action="store_const",
        const=True,
        default=None,
        help="Match the whole process name instead of a substring",
    )
    parser.add_argument(
        "-s",
        "--sort",
        choices=SORT_KEYS,
        default=None,
        help="Sort key (default: cpu)",
    )
    parser.add_argument(
        "--desc",
        dest="descending",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Sort in descending order (default: on)",
    )
    parser.add_argument(
        "--top",
        type=int,
        default=None,
        metavar="N",
        help="Show only the first N processes (0 = all)",
    )
    parser.add_argument(
        "--no-header",
        action="store_const",
        const=True,
        default=None,
        help="Hide the title and column header",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write debug logs to PATH",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Merge the config file with command-line overrides.

    Raises:
        ConfigurationError: If the merged settings are invalid.
    """
    config = load_config(args.config)
    pattern = args.pattern if args.pattern is not None else args.pattern_arg
    overrides: dict[str, Any] = {
        "interval": args.interval,
        "pattern": pattern,
        "exact": args.exact,
        "sort": args.sort,
        "descending": args.descending,
        "top": args.top,
        "no_header": args.no_header,
    }
    return build_settings(config, overrides)


def run(settings: Settings, terminal: Terminal) -> int:
    """Take over the terminal, refresh until quit, always restore it."""
    controller = SessionController(settings, terminal)
    signals = SignalListener(controller)
    signals.install()
    try:
        try:
            terminal.enable_raw_mode()
        except TerminalCapabilityError as e:
            # Still usable, only the pause/quit keys are lost
            logger.debug("raw mode unavailable: %s", e)
        terminal.enter_alt_screen()
        terminal.flush()

        signals.start()
        KeyListener(controller).start()
        logger.info("watching %r every %.1fs", settings.pattern or "*", settings.interval)
        return controller.run()
    finally:
        controller.shutdown()
        signals.restore()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.print_config:
        print(dump_default_config(), end="")
        return 0

    try:
        settings = settings_from_args(args)
    except ConfigurationError as e:
        print(f"watchproc: error: {e}", file=sys.stderr)
        return 1

    try:
        configure_logging(args.log_file)
    except OSError as e:
        print(f"watchproc: error: cannot open log file: {e}", file=sys.stderr)
        return 1

    return run(settings, open_terminal())


if __name__ == "__main__":
    raise SystemExit(main())
