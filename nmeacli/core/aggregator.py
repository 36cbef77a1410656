"""Telemetry snapshot, bounded message history and the line aggregator."""

from __future__ import annotations

import datetime as dt
import logging
from collections import deque
from dataclasses import dataclass, fields
from typing import Callable, Deque, Iterator, Mapping, Optional, Tuple

from .nmea import NmeaError, NmeaParser, Satellite

log = logging.getLogger(__name__)

HISTORY_CAPACITY = 100


@dataclass(slots=True)
class TelemetrySnapshot:
    """Best-known receiver state, folded from every accepted sentence.

    Each field stays ``None`` until a sentence supplies it. Later sentences
    overwrite a field only when they carry it, so values never expire.
    """

    fix_date: Optional[dt.date] = None
    fix_time: Optional[dt.time] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    hdop: Optional[float] = None
    vdop: Optional[float] = None
    pdop: Optional[float] = None
    num_fix_satellites: Optional[int] = None
    satellites: Optional[Tuple[Satellite, ...]] = None

    def merge(self, values: Mapping[str, object]) -> None:
        known = {item.name for item in fields(self)}
        for name, value in values.items():
            if value is None or name not in known:
                continue
            setattr(self, name, value)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    captured_at: dt.datetime
    text: str

    def display(self) -> str:
        return f"{self.captured_at:%H:%M:%S}.{self.captured_at.microsecond // 1000:03d} {self.text}"


class HistoryLog:
    """Newest-first message log that never grows past *capacity* entries."""

    def __init__(self, capacity: int = HISTORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("history capacity must be positive")
        # appendleft on a full deque discards from the right-hand (oldest) end
        self._entries: Deque[HistoryEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def push(self, entry: HistoryEntry) -> None:
        self._entries.appendleft(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> HistoryEntry:
        return self._entries[index]


class Aggregator:
    """Single-writer owner of the snapshot and the history log.

    :meth:`ingest` is only ever called from the render loop thread, so no
    locking is needed around the snapshot or history.
    """

    def __init__(
        self,
        parser: Optional[NmeaParser] = None,
        *,
        capacity: int = HISTORY_CAPACITY,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.parser = parser or NmeaParser()
        self.snapshot = TelemetrySnapshot()
        self.history = HistoryLog(capacity)
        self.accepted = 0
        self.rejected = 0
        self._clock = clock

    def ingest(self, line: str) -> bool:
        """Fold *line* into the snapshot and history; return whether it was applied.

        Lines the parser rejects are dropped without touching either.
        """

        try:
            parsed = self.parser.parse(line)
        except NmeaError as exc:
            self.rejected += 1
            log.debug("discarding line %r: %s", line, exc)
            return False
        self.snapshot.merge(parsed.fields)
        self.history.push(HistoryEntry(captured_at=self._clock(), text=line.strip()))
        self.accepted += 1
        return True
