from __future__ import annotations

import io
import pathlib
import socket

import pytest

from nmeacli.core.aggregator import Aggregator
from nmeacli.core.config import SourceConfig
from nmeacli.io import source
from nmeacli.io.source import LineQueue, SourceError, SourceReader, open_stream

FIXTURES = pathlib.Path(__file__).parent / "payloads"


class FailingStream:
    def __init__(self, lines: list[bytes]):
        self._lines = list(lines)

    def readline(self) -> bytes:
        if not self._lines:
            raise OSError("device unplugged")
        return self._lines.pop(0)


class FakeSerial:
    def __init__(self, port: str, baudrate: int):
        self.port = port
        self.baudrate = baudrate

    def readline(self) -> bytes:  # pragma: no cover - parity with serial.Serial
        return b""


def test_reader_discards_preamble_and_strips_terminators():
    lines = LineQueue()
    stream = io.BytesIO(b"$PREAMBLE\r\nfirst\r\nsecond\nthird")
    SourceReader(stream, lines).run()
    assert lines.drain() == ["first", "second", "third"]


def test_reader_can_keep_first_line():
    lines = LineQueue()
    SourceReader(io.BytesIO(b"one\ntwo\n"), lines, skip_first=False).run()
    assert lines.drain() == ["one", "two"]


def test_reader_forwards_undecodable_text():
    lines = LineQueue()
    SourceReader(io.BytesIO(b"pre\n\xff\xfe$GP\n"), lines).run()
    assert lines.drain() == ["\ufffd\ufffd$GP"]


def test_reader_stops_on_read_error():
    lines = LineQueue()
    SourceReader(FailingStream([b"pre\n", b"$GPX\n"]), lines).run()
    assert lines.drain() == ["$GPX"]


def test_reader_stops_when_channel_closed():
    lines = LineQueue()
    lines.close()
    SourceReader(io.BytesIO(b"pre\nline\nline\n"), lines).run()
    assert lines.drain() == []
    assert lines.closed


def test_reader_stops_when_stream_is_closed():
    lines = LineQueue()
    stream = io.BytesIO(b"pre\nline\n")
    stream.close()
    SourceReader(stream, lines).run()
    assert lines.drain() == []


def test_reader_thread_runs_to_end_of_stream():
    lines = LineQueue()
    reader = SourceReader(io.BytesIO(b"pre\na\nb\n"), lines)
    reader.start()
    reader.join(timeout=2.0)
    assert not reader.alive
    assert lines.drain() == ["a", "b"]


def test_session_scenario_through_reader_and_aggregator():
    lines = LineQueue()
    stream = io.BytesIO((FIXTURES / "session.nmea").read_bytes())
    SourceReader(stream, lines).run()
    aggregator = Aggregator()
    for line in lines.drain():
        aggregator.ingest(line)
    texts = [entry.text for entry in aggregator.history]
    assert len(texts) == 2
    assert texts[0].startswith("$GPGGA,123520")
    assert texts[1].startswith("$GPGGA,123519")
    assert "garbage" not in texts
    assert "$PREAMBLE" not in texts
    assert aggregator.snapshot.latitude == pytest.approx(48 + 7.1 / 60)


def test_open_stream_reads_capture_file(tmp_path):
    path = tmp_path / "capture.nmea"
    path.write_bytes(b"$PREAMBLE\n$GPTXT\n")
    with open_stream(SourceConfig(device=str(path))) as stream:
        assert stream.readline() == b"$PREAMBLE\n"


def test_open_stream_missing_file(tmp_path):
    with pytest.raises(SourceError, match="no such file"):
        open_stream(SourceConfig(device=str(tmp_path / "missing")))


def test_open_stream_uses_serial_for_character_devices(monkeypatch):
    monkeypatch.setattr(source.serial, "Serial", FakeSerial)
    stream = open_stream(SourceConfig(device="/dev/null", baud=4800))
    assert isinstance(stream, FakeSerial)
    assert stream.port == "/dev/null"
    assert stream.baudrate == 4800


def test_open_stream_network_takes_precedence(tmp_path):
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    port = server.getsockname()[1]
    try:
        config = SourceConfig(address=f"127.0.0.1:{port}", device=str(tmp_path / "missing"))
        stream = open_stream(config)
        conn, _ = server.accept()
        try:
            conn.sendall(b"$PREAMBLE\r\n$GPGGA\r\n")
            assert stream.readline() == b"$PREAMBLE\r\n"
            assert stream.readline() == b"$GPGGA\r\n"
        finally:
            conn.close()
            stream.close()
    finally:
        server.close()


def test_open_stream_connection_refused():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    with pytest.raises(SourceError, match=f"tcp://127.0.0.1:{port}"):
        open_stream(SourceConfig(address=f"127.0.0.1:{port}"))


def test_line_queue_drain_is_fifo_and_non_blocking():
    lines = LineQueue()
    assert lines.drain() == []
    for value in ("a", "b", "c"):
        lines.put_line(value)
    assert lines.drain() == ["a", "b", "c"]
    lines.close()
    with pytest.raises(source.ChannelClosedError):
        lines.put_line("d")
