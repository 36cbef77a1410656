import datetime as dt
import pathlib

import pytest

from nmeacli.core import nmea

FIXTURES = pathlib.Path(__file__).parent / "payloads"


def load_sentences(name: str) -> list[str]:
    return (FIXTURES / name).read_text().splitlines()


def load_sentence(name: str) -> str:
    return load_sentences(name)[0]


def test_with_checksum_matches_reference_sentence():
    gga = load_sentence("gga.nmea")
    body = gga[1 : gga.index("*")]
    assert nmea.with_checksum(body) == gga
    assert nmea.checksum(body) == 0x47


def test_gga_fields():
    parsed = nmea.NmeaParser().parse(load_sentence("gga.nmea"))
    assert parsed.talker == "GP"
    assert parsed.kind is nmea.SentenceType.GGA
    assert parsed.fields["fix_time"] == dt.time(12, 35, 19)
    assert parsed.fields["latitude"] == pytest.approx(48.1173)
    assert parsed.fields["longitude"] == pytest.approx(11.516667, abs=1e-6)
    assert parsed.fields["altitude"] == pytest.approx(545.4)
    assert parsed.fields["hdop"] == pytest.approx(0.9)
    assert parsed.fields["num_fix_satellites"] == 8
    assert "fix_date" not in parsed.fields


def test_gga_without_fix_only_populates_present_fields():
    sentence = nmea.with_checksum("GPGGA,,,,,,0,00,,,M,,M,,")
    parsed = nmea.NmeaParser().parse(sentence)
    assert parsed.fields == {"num_fix_satellites": 0}


def test_rmc_date_and_position():
    parsed = nmea.NmeaParser().parse(load_sentence("rmc.nmea"))
    assert parsed.kind is nmea.SentenceType.RMC
    assert parsed.fields["fix_date"] == dt.date(1994, 3, 23)
    assert parsed.fields["fix_time"] == dt.time(12, 35, 19)
    assert parsed.fields["latitude"] == pytest.approx(48.1173)


def test_rmc_void_status_skips_position():
    sentence = nmea.with_checksum("GPRMC,123519,V,4807.038,N,01131.000,E,,,230324,,")
    parsed = nmea.NmeaParser().parse(sentence)
    assert parsed.fields["fix_date"] == dt.date(2024, 3, 23)
    assert "latitude" not in parsed.fields
    assert "longitude" not in parsed.fields


def test_gll_southern_western_hemispheres():
    parsed = nmea.NmeaParser().parse(load_sentence("gll.nmea"))
    assert parsed.fields["latitude"] == pytest.approx(49.274167, abs=1e-6)
    assert parsed.fields["longitude"] == pytest.approx(-123.185333, abs=1e-6)
    assert parsed.fields["fix_time"] == dt.time(22, 54, 44)


def test_gsa_dilution_of_precision():
    parsed = nmea.NmeaParser().parse(load_sentence("gsa.nmea"))
    assert parsed.fields == {"pdop": 2.5, "hdop": 1.3, "vdop": 2.1}


def test_gsv_publishes_satellites_when_scan_completes():
    parser = nmea.NmeaParser()
    first, second = load_sentences("gsv.nmea")
    assert parser.parse(first).fields == {}
    satellites = parser.parse(second).fields["satellites"]
    assert [sat.prn for sat in satellites] == [1, 2, 12, 14, 15, 17, 19, 22]
    assert str(satellites[0]) == "GPS: 1 elv: 40 ath: 83 snr: 46"
    assert satellites[6].snr is None
    assert str(satellites[6]) == "GPS: 19 elv: 25 ath: 300 snr: -"


def test_gsv_combines_systems_sorted():
    parser = nmea.NmeaParser()
    for line in load_sentences("gsv.nmea"):
        parser.parse(line)
    glonass = nmea.with_checksum("GLGSV,1,1,01,65,30,120,35")
    satellites = parser.parse(glonass).fields["satellites"]
    assert len(satellites) == 9
    assert satellites[-1].gnss is nmea.GnssType.GLONASS
    assert satellites[-1].prn == 65


def test_gsv_trailing_signal_id_is_not_a_satellite():
    parser = nmea.NmeaParser()
    line = nmea.with_checksum("GPGSV,1,1,02,05,40,083,46,12,17,308,41,1")
    satellites = parser.parse(line).fields["satellites"]
    assert [sat.prn for sat in satellites] == [5, 12]
    assert satellites[1].snr == 41.0


def test_gsv_out_of_sequence_is_rejected():
    parser = nmea.NmeaParser()
    _, second = load_sentences("gsv.nmea")
    with pytest.raises(nmea.NmeaFormatError):
        parser.parse(second)


def test_txt_and_vtg_accepted_without_fields():
    parser = nmea.NmeaParser()
    parsed = parser.parse(load_sentence("txt.nmea"))
    assert parsed.kind is nmea.SentenceType.TXT
    assert parsed.fields == {}
    assert parser.last_txt == "u-blox ag - www.u-blox.com"
    assert parser.parse(load_sentence("vtg.nmea")).fields == {}


@pytest.mark.parametrize(
    "line, error",
    [
        ("garbage", nmea.NmeaFormatError),
        ("", nmea.NmeaFormatError),
        ("$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,", nmea.NmeaChecksumError),
        ("$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*00", nmea.NmeaChecksumError),
        ("$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*ZZ", nmea.NmeaChecksumError),
        ("$" + "A" * 120 + "*00", nmea.NmeaFormatError),
    ],
)
def test_malformed_sentences_raise(line, error):
    with pytest.raises(error):
        nmea.NmeaParser().parse(line)


def test_unsupported_sentence_type():
    sentence = nmea.with_checksum("GPZDA,201530.00,04,07,2002,00,00")
    with pytest.raises(nmea.UnsupportedSentenceError):
        nmea.NmeaParser().parse(sentence)


def test_invalid_field_values_raise_format_error():
    parser = nmea.NmeaParser()
    with pytest.raises(nmea.NmeaFormatError):
        parser.parse(nmea.with_checksum("GPGGA,123519,48x7.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,"))
    with pytest.raises(nmea.NmeaFormatError):
        parser.parse(nmea.with_checksum("GPGGA,996119,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,"))
    with pytest.raises(nmea.NmeaFormatError):
        parser.parse(nmea.with_checksum("GPGGA,123519"))
