"""Opening the telemetry byte stream and reading it on a background thread."""

from __future__ import annotations

import logging
import os
import queue
import socket
import stat
import threading
from typing import BinaryIO, List, Optional

import serial

from nmeacli.core.config import SourceConfig

log = logging.getLogger(__name__)


class SourceError(RuntimeError):
    """Raised when the configured telemetry stream cannot be opened."""


class ChannelClosedError(RuntimeError):
    """Raised when a line is sent after the consumer closed the channel."""


class LineQueue(queue.Queue):
    """Unbounded FIFO of raw lines with a close flag and a bulk drain."""

    def __init__(self) -> None:
        super().__init__()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()

    def put_line(self, line: str) -> None:
        if self._closed.is_set():
            raise ChannelClosedError("line consumer has gone away")
        self.put_nowait(line)

    def drain(self) -> List[str]:
        """Return every line queued right now without waiting for more."""

        lines: List[str] = []
        try:
            while True:
                lines.append(self.get_nowait())
        except queue.Empty:
            pass
        return lines


def friendly_source_error(exc: Exception, target: str) -> str:
    message = str(exc)
    if isinstance(exc, PermissionError) or "Permission" in message:
        return f"{target}: permission denied (is the user in the dialout group?)"
    if isinstance(exc, FileNotFoundError) or "No such file" in message:
        return f"{target}: no such file or device"
    if "Device or resource busy" in message or "Resource busy" in message:
        return f"{target}: device busy (ModemManager or another process?)"
    if isinstance(exc, ConnectionRefusedError):
        return f"{target}: connection refused"
    if isinstance(exc, socket.gaierror):
        return f"{target}: cannot resolve host ({message})"
    return f"{target}: {message or exc.__class__.__name__}"


def open_stream(config: SourceConfig) -> BinaryIO:
    """Open the single telemetry stream described by *config*.

    A network address takes precedence. Device paths that are character
    devices are opened through pyserial; anything else is read as a file.
    """

    target = config.describe()
    try:
        if config.is_network:
            host, port = config.endpoint()
            sock = socket.create_connection((host, port))
            stream = sock.makefile("rb")
            # the file object keeps the socket alive; drop our own reference
            sock.close()
            log.info("connected to %s:%d", host, port)
            return stream
        device = str(config.device)
        if stat.S_ISCHR(os.stat(device).st_mode):
            log.info("opening serial device %s at %d baud", device, config.baud)
            return serial.Serial(device, baudrate=config.baud)
        log.info("reading capture file %s", device)
        return open(device, "rb")
    except (OSError, serial.SerialException, ValueError) as exc:
        raise SourceError(friendly_source_error(exc, target)) from exc


def decode_line(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


class SourceReader:
    """Read lines from *stream* and hand them to *lines* from a daemon thread.

    The first line of the stream is a sync preamble and is dropped. A read
    failure, end of stream or a closed channel ends the thread quietly;
    nothing is retried.
    """

    def __init__(self, stream: BinaryIO, lines: LineQueue, *, skip_first: bool = True) -> None:
        self._stream = stream
        self._lines = lines
        self._skip_first = skip_first
        self._thread: Optional[threading.Thread] = None

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.alive:
            return
        self._thread = threading.Thread(target=self.run, name="source-reader", daemon=True)
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread:
            self._thread.join(timeout)

    def run(self) -> None:
        skip = self._skip_first
        forwarded = 0
        try:
            while True:
                raw = self._stream.readline()
                if not raw:
                    log.info("telemetry stream ended after %d lines", forwarded)
                    return
                if skip:
                    skip = False
                    continue
                self._lines.put_line(decode_line(raw))
                forwarded += 1
        except ChannelClosedError:
            log.info("line channel closed, reader stopping")
        except (OSError, serial.SerialException) as exc:
            log.warning("telemetry read failed, reader stopping: %s", exc)
        except ValueError:
            # stream closed underneath us during shutdown
            log.info("telemetry stream closed, reader stopping")
