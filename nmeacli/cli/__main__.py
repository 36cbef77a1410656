"""``python -m nmeacli.cli``: the live monitor, or ``dump FILE`` for captures."""

from __future__ import annotations

import sys
from typing import List, Optional

from . import dump, monitor


def entry(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if args[:1] == ["dump"]:
        return dump.main(args[1:])
    return monitor.main(args)


if __name__ == "__main__":  # pragma: no cover - entry point
    sys.exit(entry())
