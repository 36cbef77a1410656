"""Scoped acquisition of the terminal: cbreak input plus an alternate screen."""

from __future__ import annotations

import logging
import sys
import termios
import tty
from typing import Any, Iterator, Optional, TextIO

from rich.console import Console, RenderableType
from rich.live import Live
from rich.text import Text

from .events import read_keys

log = logging.getLogger(__name__)


class TerminalError(RuntimeError):
    """Raised when the terminal cannot be switched into dashboard mode."""


class TerminalSession:
    """Context manager owning the terminal for the lifetime of the dashboard.

    Entering puts stdin into cbreak mode and starts a full-screen
    :class:`rich.live.Live` (alternate screen, hidden cursor). Leaving undoes
    both, on normal exit and on exceptions alike.
    """

    def __init__(self, *, console: Optional[Console] = None, stdin: Optional[TextIO] = None) -> None:
        self._console = console or Console()
        self._stdin = stdin or sys.stdin
        self._fd: Optional[int] = None
        self._old_settings: Any = None
        self._live: Optional[Live] = None

    def __enter__(self) -> "TerminalSession":
        if not self._stdin.isatty():
            raise TerminalError("stdin is not a terminal")
        try:
            fd = self._stdin.fileno()
            self._old_settings = termios.tcgetattr(fd)
            tty.setcbreak(fd)
            self._fd = fd
        except (OSError, termios.error) as exc:
            raise TerminalError(f"cannot switch terminal to cbreak mode: {exc}") from exc
        live = Live(
            Text("waiting for telemetry..."),
            console=self._console,
            screen=True,
            auto_refresh=False,
            redirect_stdout=False,
            redirect_stderr=False,
        )
        try:
            live.start()
        except Exception as exc:
            self._restore_input()
            raise TerminalError(f"cannot start display: {exc}") from exc
        self._live = live
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._live is not None:
                self._live.stop()
                self._live = None
        finally:
            self._restore_input()

    def draw(self, renderable: RenderableType) -> None:
        if self._live is None:
            raise TerminalError("terminal session is not active")
        self._live.update(renderable, refresh=True)

    def keys(self) -> Iterator[str]:
        if self._fd is None:
            raise TerminalError("terminal session is not active")
        return read_keys(self._fd)

    def _restore_input(self) -> None:
        if self._fd is None or self._old_settings is None:
            return
        try:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._old_settings)
        except termios.error as exc:
            log.warning("failed to restore terminal settings: %s", exc)
        self._fd = None
        self._old_settings = None
