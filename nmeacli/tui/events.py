"""Keyboard and timer events merged into a single ordered stream."""

from __future__ import annotations

import codecs
import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Input:
    key: str


@dataclass(frozen=True)
class Tick:
    pass


Event = Union[Input, Tick]


@dataclass(frozen=True)
class EventConfig:
    exit_key: str = "q"
    tick_rate: float = 0.05


def read_keys(fd: int) -> Iterator[str]:
    """Yield characters typed on *fd* until it closes or fails."""

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        try:
            data = os.read(fd, 32)
        except OSError as exc:
            log.warning("keyboard read failed: %s", exc)
            return
        if not data:
            return
        yield from decoder.decode(data)


class Events:
    """Merge a key source and a fixed-interval ticker into one FIFO.

    The input thread stops by itself after forwarding the exit key while
    exit-key handling is enabled; the ticker runs until process exit.
    """

    def __init__(self, keys: Iterable[str], config: EventConfig = EventConfig()) -> None:
        self.config = config
        self._keys = keys
        self._queue: "queue.Queue[Event]" = queue.Queue()
        self._exit_key_enabled = threading.Event()
        self._exit_key_enabled.set()
        self._input_thread: Optional[threading.Thread] = None
        self._tick_thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._input_thread is None:
            self._input_thread = threading.Thread(target=self._read_input, name="events-input", daemon=True)
            self._input_thread.start()
        if self._tick_thread is None:
            self._tick_thread = threading.Thread(target=self._tick, name="events-tick", daemon=True)
            self._tick_thread.start()

    @property
    def input_alive(self) -> bool:
        return self._input_thread is not None and self._input_thread.is_alive()

    @property
    def exit_key_enabled(self) -> bool:
        return self._exit_key_enabled.is_set()

    def enable_exit_key(self) -> None:
        self._exit_key_enabled.set()

    def disable_exit_key(self) -> None:
        self._exit_key_enabled.clear()

    def next(self) -> Event:
        """Block until the next event arrives."""

        return self._queue.get()

    def poll(self) -> Optional[Event]:
        """Return the next event, or ``None`` when nothing is queued."""

        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def _read_input(self) -> None:
        for key in self._keys:
            self._queue.put(Input(key))
            if self._exit_key_enabled.is_set() and key == self.config.exit_key:
                log.info("exit key %r received, input listener stopping", key)
                return

    def _tick(self) -> None:
        while True:
            time.sleep(self.config.tick_rate)
            self._queue.put(Tick())
