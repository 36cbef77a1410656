"""Single-threaded control loop: drain lines, pull an event, redraw."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional, Protocol

from nmeacli.core.aggregator import Aggregator
from nmeacli.io.source import LineQueue

from .events import Event, Input

log = logging.getLogger(__name__)


class EventSource(Protocol):
    """The subset of :class:`~nmeacli.tui.events.Events` the loop relies on."""

    def next(self) -> Event:  # pragma: no cover - protocol signature
        ...

    def poll(self) -> Optional[Event]:  # pragma: no cover - protocol signature
        ...


class LoopState(Enum):
    RUNNING = "running"
    SHUTDOWN = "shutdown"


class RenderLoop:
    """Drive ingestion and redraws from the multiplexed event stream.

    Each iteration drains every queued line into the aggregator, pulls one
    event, stops on the exit key and otherwise redraws the whole dashboard.
    Errors raised by *draw* are not caught.
    """

    def __init__(
        self,
        aggregator: Aggregator,
        lines: LineQueue,
        events: EventSource,
        draw: Callable[[Aggregator], None],
        *,
        exit_key: str = "q",
        blocking: bool = True,
    ) -> None:
        self.aggregator = aggregator
        self.lines = lines
        self.events = events
        self.exit_key = exit_key
        self.blocking = blocking
        self.state = LoopState.RUNNING
        self.frames = 0
        self._draw = draw

    def drain_lines(self) -> int:
        applied = 0
        for line in self.lines.drain():
            if self.aggregator.ingest(line):
                applied += 1
        return applied

    def is_exit(self, event: Optional[Event]) -> bool:
        return isinstance(event, Input) and event.key == self.exit_key

    def step(self) -> bool:
        """Run one iteration; return ``False`` once the exit key was seen."""

        self.drain_lines()
        event = self.events.next() if self.blocking else self.events.poll()
        if self.is_exit(event):
            self.state = LoopState.SHUTDOWN
            return False
        self._draw(self.aggregator)
        self.frames += 1
        return True

    def run(self) -> int:
        """Loop until the exit key arrives and return the number of redraws."""

        try:
            while self.state is LoopState.RUNNING and self.step():
                pass
        finally:
            self.state = LoopState.SHUTDOWN
            self.lines.close()
        log.info(
            "render loop stopped after %d frames (%d lines accepted, %d rejected)",
            self.frames,
            self.aggregator.accepted,
            self.aggregator.rejected,
        )
        return self.frames
