"""Dashboard rendering with rich."""

from __future__ import annotations

from typing import Iterable, Optional

from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel
from rich.text import Text

from nmeacli.core.aggregator import HistoryEntry, TelemetrySnapshot

NOT_AVAILABLE = "<not available>"

STATUS_HEIGHT = 5
SATELLITES_MIN_HEIGHT = 15
MESSAGES_MIN_HEIGHT = 10


def datetime_text(snapshot: TelemetrySnapshot) -> Optional[str]:
    if snapshot.fix_date is None or snapshot.fix_time is None:
        return None
    return f"{snapshot.fix_date.isoformat()} {snapshot.fix_time.isoformat()}"


def position_text(snapshot: TelemetrySnapshot) -> Optional[str]:
    if snapshot.latitude is None or snapshot.longitude is None or snapshot.altitude is None:
        return None
    return f"{snapshot.latitude:.6f} / {snapshot.longitude:.6f} / {snapshot.altitude:.6f}"


def dop_text(snapshot: TelemetrySnapshot) -> Optional[str]:
    if snapshot.hdop is None or snapshot.vdop is None or snapshot.pdop is None:
        return None
    return f"{snapshot.hdop:.2f} / {snapshot.vdop:.2f} / {snapshot.pdop:.2f}"


def option_text(value: Optional[object]) -> str:
    return NOT_AVAILABLE if value is None else str(value)


def build_status_panel(snapshot: TelemetrySnapshot) -> Panel:
    body = Text()
    body.append(f"datetime   : {option_text(datetime_text(snapshot))}\n")
    body.append(f"latlonalt  : {option_text(position_text(snapshot))}\n")
    body.append(f"dop (h/v/p): {option_text(dop_text(snapshot))}")
    return Panel(body, title="Status", title_align="left")


def build_satellites_panel(snapshot: TelemetrySnapshot) -> Panel:
    title = f"Satellites (fixed={option_text(snapshot.num_fix_satellites)})"
    lines = [Text(str(sat)) for sat in snapshot.satellites or ()]
    return Panel(Group(*lines), title=title, title_align="left")


def build_messages_panel(history: Iterable[HistoryEntry]) -> Panel:
    body = Text(overflow="fold")
    for index, entry in enumerate(history):
        if index:
            body.append("\n")
        body.append(entry.display())
    return Panel(body, title="Messages", title_align="left")


def render_dashboard(snapshot: TelemetrySnapshot, history: Iterable[HistoryEntry]) -> RenderableType:
    root = Layout(name="root")
    root.split_column(
        Layout(name="status", size=STATUS_HEIGHT),
        Layout(name="satellites", ratio=3, minimum_size=SATELLITES_MIN_HEIGHT),
        Layout(name="messages", ratio=2, minimum_size=MESSAGES_MIN_HEIGHT),
    )
    root["status"].update(build_status_panel(snapshot))
    root["satellites"].update(build_satellites_panel(snapshot))
    root["messages"].update(build_messages_panel(history))
    return root
