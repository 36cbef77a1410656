"""Command line entry point for the live telemetry dashboard."""

from __future__ import annotations

import argparse
import contextlib
import logging
import os
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional

from nmeacli.core.aggregator import Aggregator
from nmeacli.core.config import ConfigError, MonitorSettings, SourceConfig, load_settings
from nmeacli.io.source import LineQueue, SourceError, SourceReader, open_stream
from nmeacli.tui.events import EventConfig, Events
from nmeacli.tui.loop import RenderLoop
from nmeacli.tui.terminal import TerminalError, TerminalSession
from nmeacli.tui.views import render_dashboard

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nmeacli",
        description=(
            "Live NMEA telemetry monitor. The source is taken from NMEACLI_ADDR "
            "(host:port) or NMEACLI_DEVICE (path) unless given on the command line."
        ),
    )
    parser.add_argument("--config", help="Path to config.yaml overriding defaults")
    parser.add_argument("--address", help="Read from a TCP host:port instead of the environment")
    parser.add_argument("--device", help="Read from a serial device or capture file")
    parser.add_argument("--baud", type=int, help="Serial baud rate for device sources")
    parser.add_argument("--tick-rate", type=float, help="Seconds between redraws")
    parser.add_argument("--exit-key", help="Key that quits the monitor")
    parser.add_argument("--history", type=int, help="Number of messages kept in the log pane")
    parser.add_argument(
        "--keep-preamble",
        dest="skip_preamble",
        action="store_const",
        const=False,
        default=None,
        help="Do not discard the first line of the stream",
    )
    parser.add_argument("--log-file", help="Write diagnostics to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    return parser


def configure_logging(path: Optional[str], verbose: bool) -> None:
    if path:
        logging.basicConfig(
            filename=path,
            level=logging.DEBUG if verbose else logging.INFO,
            format=LOG_FORMAT,
        )
    else:
        # the dashboard owns the terminal; keep records off stderr
        logging.getLogger("nmeacli").addHandler(logging.NullHandler())


def resolve_source(args: argparse.Namespace, settings: MonitorSettings) -> SourceConfig:
    if args.address or args.device:
        source = SourceConfig(address=args.address, device=args.device, baud=settings.baud)
    else:
        source = SourceConfig.from_env(os.environ, baud=settings.baud)
    return source.validate()


def run_monitor(
    stream: BinaryIO,
    settings: MonitorSettings,
    *,
    session: Optional[TerminalSession] = None,
) -> int:
    """Run the dashboard over an already opened *stream* until the exit key."""

    lines = LineQueue()
    aggregator = Aggregator(capacity=settings.history_capacity)
    reader = SourceReader(stream, lines, skip_first=settings.skip_preamble)
    with session or TerminalSession() as terminal:
        events = Events(
            terminal.keys(),
            EventConfig(exit_key=settings.exit_key, tick_rate=settings.tick_rate),
        )
        reader.start()
        events.start()

        def _draw(state: Aggregator) -> None:
            terminal.draw(render_dashboard(state.snapshot, state.history))

        loop = RenderLoop(aggregator, lines, events, _draw, exit_key=settings.exit_key)
        loop.run()
    return 0


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_file, args.verbose)

    try:
        settings = load_settings(Path(args.config) if args.config else None).with_overrides(
            tick_rate=args.tick_rate,
            exit_key=args.exit_key,
            history_capacity=args.history,
            skip_preamble=args.skip_preamble,
            baud=args.baud,
        )
        source = resolve_source(args, settings)
    except ConfigError as exc:
        parser.error(str(exc))

    try:
        stream = open_stream(source)
    except SourceError as exc:
        print(f"nmeacli: cannot open telemetry source {exc}", file=sys.stderr)
        return 1
    log.info("monitoring %s", source.describe())

    try:
        with contextlib.closing(stream):
            return run_monitor(stream, settings)
    except TerminalError as exc:
        print(f"nmeacli: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
