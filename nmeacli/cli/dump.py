"""Parse a captured NMEA file line by line and print what each sentence yields."""

from __future__ import annotations

import argparse
import datetime as dt
import json
import sys
from pathlib import Path
from typing import Dict, Iterable, List

from nmeacli.core.nmea import NmeaError, NmeaParser, SentenceType


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nmeacli-dump", description="Parse an NMEA capture file and print the results"
    )
    parser.add_argument("input", type=Path, help="Capture file with one sentence per line")
    parser.add_argument(
        "--jsonl",
        action="store_true",
        help="Emit JSON lines instead of human readable output",
    )
    return parser


def _jsonable(value: object) -> object:
    if isinstance(value, (dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, tuple):
        return [str(item) for item in value]
    return value


def dump_lines(lines: Iterable[str], *, jsonl: bool = False) -> List[str]:
    parser = NmeaParser()
    output: List[str] = []
    for number, line in enumerate(lines, start=1):
        record: Dict[str, object] = {"line": number}
        try:
            parsed = parser.parse(line)
        except NmeaError as exc:
            record.update(ok=False, error=f"{exc.__class__.__name__}: {exc}")
        else:
            record.update(
                ok=True,
                kind=parsed.kind.value,
                fields={name: _jsonable(value) for name, value in parsed.fields.items()},
            )
            if parsed.kind is SentenceType.TXT:
                record["txt"] = parser.last_txt
        if jsonl:
            output.append(json.dumps(record, ensure_ascii=False))
        elif record["ok"]:
            output.append(f"{number}: Ok({record['kind']}) {record['fields']}")
            if "txt" in record:
                output.append(f"txt: {record['txt']}")
        else:
            output.append(f"{number}: Err({record['error']})")
    return output


def main(argv: List[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        text = args.input.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        print(f"nmeacli-dump: {args.input}: {exc.strerror or exc}", file=sys.stderr)
        return 1
    for row in dump_lines(text.splitlines(), jsonl=args.jsonl):
        print(row)
    return 0


if __name__ == "__main__":
    sys.exit(main())
