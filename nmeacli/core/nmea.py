"""NMEA 0183 sentence framing and parsing."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

SENTENCE_START = "$"
CHECKSUM_SEPARATOR = "*"
MAX_SENTENCE_LENGTH = 102


class NmeaError(Exception):
    """Base class for NMEA parse errors."""


class NmeaFormatError(NmeaError):
    """Raised when a sentence is malformed or carries invalid field values."""


class NmeaChecksumError(NmeaError):
    """Raised when the ``*hh`` checksum is missing or does not match."""


class UnsupportedSentenceError(NmeaError):
    """Raised for well-formed sentences of a type we do not interpret."""


class SentenceType(Enum):
    GGA = "GGA"
    GLL = "GLL"
    GSA = "GSA"
    GSV = "GSV"
    RMC = "RMC"
    TXT = "TXT"
    VTG = "VTG"


class GnssType(Enum):
    GPS = "GPS"
    GLONASS = "GLONASS"
    GALILEO = "Galileo"
    BEIDOU = "BeiDou"
    QZSS = "QZSS"
    COMBINED = "GNSS"


TALKER_GNSS: Dict[str, GnssType] = {
    "GP": GnssType.GPS,
    "GL": GnssType.GLONASS,
    "GA": GnssType.GALILEO,
    "GB": GnssType.BEIDOU,
    "BD": GnssType.BEIDOU,
    "GQ": GnssType.QZSS,
    "QZ": GnssType.QZSS,
    "GN": GnssType.COMBINED,
}

_GNSS_ORDER = {gnss: index for index, gnss in enumerate(GnssType)}


@dataclass(frozen=True)
class Satellite:
    """A satellite reported in view by a GSV sentence."""

    gnss: GnssType
    prn: int
    elevation: Optional[float] = None
    azimuth: Optional[float] = None
    snr: Optional[float] = None

    def sort_key(self) -> Tuple[int, int]:
        return (_GNSS_ORDER[self.gnss], self.prn)

    def __str__(self) -> str:
        return (
            f"{self.gnss.value}: {self.prn} elv: {_or_dash(self.elevation)} "
            f"ath: {_or_dash(self.azimuth)} snr: {_or_dash(self.snr)}"
        )


def _or_dash(value: Optional[float]) -> str:
    if value is None:
        return "-"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class ParsedSentence:
    """Result of a successful parse.

    ``fields`` holds only the snapshot fields populated by this sentence;
    anything the sentence left empty is absent.
    """

    talker: str
    kind: SentenceType
    fields: Mapping[str, object] = field(default_factory=dict)


def checksum(body: str) -> int:
    """Return the XOR checksum of the characters between ``$`` and ``*``."""

    value = 0
    for char in body:
        value ^= ord(char)
    return value & 0xFF


def with_checksum(body: str) -> str:
    """Frame *body* (without ``$``) as a complete sentence."""

    body = body.lstrip(SENTENCE_START)
    return f"{SENTENCE_START}{body}{CHECKSUM_SEPARATOR}{checksum(body):02X}"


def split_sentence(line: str) -> Tuple[str, str, List[str]]:
    """Validate framing and checksum, returning ``(talker, kind, fields)``."""

    sentence = line.strip()
    if not sentence:
        raise NmeaFormatError("empty sentence")
    if len(sentence) > MAX_SENTENCE_LENGTH:
        raise NmeaFormatError(f"sentence exceeds {MAX_SENTENCE_LENGTH} characters")
    if not sentence.startswith(SENTENCE_START):
        raise NmeaFormatError("sentence must start with '$'")
    body, sep, received = sentence[1:].rpartition(CHECKSUM_SEPARATOR)
    if not sep:
        raise NmeaChecksumError("missing checksum")
    try:
        expected = int(received, 16)
    except ValueError:
        raise NmeaChecksumError(f"invalid checksum digits {received!r}") from None
    if len(received) != 2:
        raise NmeaChecksumError(f"invalid checksum digits {received!r}")
    calc = checksum(body)
    if calc != expected:
        raise NmeaChecksumError(f"checksum mismatch: expected {calc:02X}, got {expected:02X}")
    parts = body.split(",")
    address = parts[0]
    if len(address) != 5 or not address.isalnum() or not address.isupper():
        raise NmeaFormatError(f"invalid address field {address!r}")
    return address[:2], address[2:], parts[1:]


def _field(values: Sequence[str], index: int) -> str:
    if index < len(values):
        return values[index].strip()
    return ""


def _require(values: Sequence[str], count: int, kind: str) -> None:
    if len(values) < count:
        raise NmeaFormatError(f"{kind} sentence has {len(values)} fields, expected {count}")


def parse_float(value: str) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        raise NmeaFormatError(f"invalid number {value!r}") from None


def parse_int(value: str) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        raise NmeaFormatError(f"invalid integer {value!r}") from None


def parse_time(value: str) -> Optional[dt.time]:
    """Parse ``hhmmss[.sss]`` into a :class:`datetime.time`."""

    if not value:
        return None
    whole, _, fraction = value.partition(".")
    if len(whole) != 6 or not whole.isdigit() or (fraction and not fraction.isdigit()):
        raise NmeaFormatError(f"invalid time {value!r}")
    micros = int((fraction + "000000")[:6]) if fraction else 0
    try:
        return dt.time(int(whole[0:2]), int(whole[2:4]), int(whole[4:6]), micros)
    except ValueError:
        raise NmeaFormatError(f"invalid time {value!r}") from None


def parse_date(value: str) -> Optional[dt.date]:
    """Parse ``ddmmyy`` into a :class:`datetime.date`.

    Two-digit years below 80 map to 20xx, the rest to 19xx.
    """

    if not value:
        return None
    if len(value) != 6 or not value.isdigit():
        raise NmeaFormatError(f"invalid date {value!r}")
    year = int(value[4:6])
    year += 2000 if year < 80 else 1900
    try:
        return dt.date(year, int(value[2:4]), int(value[0:2]))
    except ValueError:
        raise NmeaFormatError(f"invalid date {value!r}") from None


def _parse_coordinate(value: str, hemisphere: str, degree_digits: int, positive: str, negative: str) -> Optional[float]:
    if not value and not hemisphere:
        return None
    if not value or hemisphere not in (positive, negative):
        raise NmeaFormatError(f"invalid coordinate {value!r} {hemisphere!r}")
    degrees = parse_int(value[:degree_digits])
    minutes = parse_float(value[degree_digits:])
    if degrees is None or minutes is None or minutes >= 60.0:
        raise NmeaFormatError(f"invalid coordinate {value!r}")
    result = degrees + minutes / 60.0
    return -result if hemisphere == negative else result


def parse_latitude(value: str, hemisphere: str) -> Optional[float]:
    """Convert ``ddmm.mmmm`` plus ``N``/``S`` into signed decimal degrees."""

    latitude = _parse_coordinate(value, hemisphere, 2, "N", "S")
    if latitude is not None and abs(latitude) > 90.0:
        raise NmeaFormatError(f"latitude out of range: {latitude}")
    return latitude


def parse_longitude(value: str, hemisphere: str) -> Optional[float]:
    """Convert ``dddmm.mmmm`` plus ``E``/``W`` into signed decimal degrees."""

    longitude = _parse_coordinate(value, hemisphere, 3, "E", "W")
    if longitude is not None and abs(longitude) > 180.0:
        raise NmeaFormatError(f"longitude out of range: {longitude}")
    return longitude


def _populated(**values: object) -> Dict[str, object]:
    return {name: value for name, value in values.items() if value is not None}


@dataclass
class _SatelliteScan:
    total: int
    received: int = 0
    satellites: List[Satellite] = field(default_factory=list)


class NmeaParser:
    """Stateful NMEA parser.

    Most sentences are independent, but GSV satellite lists arrive split over
    several messages; the parser keeps the in-progress scan per GNSS system
    and publishes the combined satellite set once a scan completes.
    """

    def __init__(self) -> None:
        self._scans: Dict[GnssType, _SatelliteScan] = {}
        self._satellites: Dict[GnssType, List[Satellite]] = {}
        self.last_txt: Optional[str] = None
        self._handlers: Dict[SentenceType, Callable[[str, List[str]], Dict[str, object]]] = {
            SentenceType.GGA: self._parse_gga,
            SentenceType.GLL: self._parse_gll,
            SentenceType.GSA: self._parse_gsa,
            SentenceType.GSV: self._parse_gsv,
            SentenceType.RMC: self._parse_rmc,
            SentenceType.TXT: self._parse_txt,
            SentenceType.VTG: self._parse_vtg,
        }

    def parse(self, line: str) -> ParsedSentence:
        """Parse one line, raising :class:`NmeaError` if it is rejected."""

        talker, code, values = split_sentence(line)
        try:
            kind = SentenceType(code)
        except ValueError:
            raise UnsupportedSentenceError(f"unsupported sentence type {talker}{code}") from None
        fields = self._handlers[kind](talker, values)
        return ParsedSentence(talker=talker, kind=kind, fields=fields)

    @property
    def satellites(self) -> Tuple[Satellite, ...]:
        merged = [sat for group in self._satellites.values() for sat in group]
        return tuple(sorted(merged, key=Satellite.sort_key))

    def _parse_gga(self, talker: str, values: List[str]) -> Dict[str, object]:
        _require(values, 9, "GGA")
        return _populated(
            fix_time=parse_time(_field(values, 0)),
            latitude=parse_latitude(_field(values, 1), _field(values, 2)),
            longitude=parse_longitude(_field(values, 3), _field(values, 4)),
            num_fix_satellites=parse_int(_field(values, 6)),
            hdop=parse_float(_field(values, 7)),
            altitude=parse_float(_field(values, 8)),
        )

    def _parse_rmc(self, talker: str, values: List[str]) -> Dict[str, object]:
        _require(values, 9, "RMC")
        status = _field(values, 1)
        if status not in ("A", "V"):
            raise NmeaFormatError(f"invalid RMC status {status!r}")
        latitude = parse_latitude(_field(values, 2), _field(values, 3))
        longitude = parse_longitude(_field(values, 4), _field(values, 5))
        parse_float(_field(values, 6))
        parse_float(_field(values, 7))
        fields = _populated(
            fix_time=parse_time(_field(values, 0)),
            fix_date=parse_date(_field(values, 8)),
        )
        if status == "A":
            fields.update(_populated(latitude=latitude, longitude=longitude))
        return fields

    def _parse_gll(self, talker: str, values: List[str]) -> Dict[str, object]:
        _require(values, 6, "GLL")
        latitude = parse_latitude(_field(values, 0), _field(values, 1))
        longitude = parse_longitude(_field(values, 2), _field(values, 3))
        fields = _populated(fix_time=parse_time(_field(values, 4)))
        if _field(values, 5) == "A":
            fields.update(_populated(latitude=latitude, longitude=longitude))
        return fields

    def _parse_gsa(self, talker: str, values: List[str]) -> Dict[str, object]:
        _require(values, 17, "GSA")
        for prn in values[2:14]:
            parse_int(prn.strip())
        return _populated(
            pdop=parse_float(_field(values, 14)),
            hdop=parse_float(_field(values, 15)),
            vdop=parse_float(_field(values, 16)),
        )

    def _parse_gsv(self, talker: str, values: List[str]) -> Dict[str, object]:
        _require(values, 3, "GSV")
        total = parse_int(_field(values, 0))
        number = parse_int(_field(values, 1))
        if total is None or number is None or not 1 <= number <= total:
            raise NmeaFormatError("invalid GSV message numbering")
        gnss = TALKER_GNSS.get(talker, GnssType.COMBINED)
        satellites = []
        # NMEA 4.10 appends a signal id after the last complete block
        for offset in range(3, len(values) - 3, 4):
            prn = parse_int(_field(values, offset))
            if prn is None:
                continue
            satellites.append(
                Satellite(
                    gnss=gnss,
                    prn=prn,
                    elevation=parse_float(_field(values, offset + 1)),
                    azimuth=parse_float(_field(values, offset + 2)),
                    snr=parse_float(_field(values, offset + 3)),
                )
            )

        scan = self._scans.get(gnss)
        if number == 1:
            scan = _SatelliteScan(total=total)
            self._scans[gnss] = scan
        elif scan is None or scan.total != total or scan.received + 1 != number:
            self._scans.pop(gnss, None)
            raise NmeaFormatError(f"out of sequence GSV message {number}/{total}")
        scan.received = number
        scan.satellites.extend(satellites)
        if number < total:
            return {}
        del self._scans[gnss]
        self._satellites[gnss] = scan.satellites
        return {"satellites": self.satellites}

    def _parse_txt(self, talker: str, values: List[str]) -> Dict[str, object]:
        _require(values, 4, "TXT")
        parse_int(_field(values, 0))
        parse_int(_field(values, 1))
        self.last_txt = ",".join(values[3:])
        return {}

    def _parse_vtg(self, talker: str, values: List[str]) -> Dict[str, object]:
        _require(values, 8, "VTG")
        for index in (0, 2, 4, 6):
            parse_float(_field(values, index))
        return {}
