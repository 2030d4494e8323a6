from datetime import date
from typing import Iterable, List, Sequence

from kumbhaka.core.phase_machine import DEFAULT_PHASE_NAMES
from kumbhaka.core.session_record import SessionRecord
from kumbhaka.core.settings import TimeDisplayStyle
from kumbhaka.utils.time_conversions import (
    format_date_only,
    format_date_time,
    format_seconds,
    format_time_only,
)

START_LABEL = "開始"


def _phase_lines(record: SessionRecord, style: TimeDisplayStyle, phase_names: Sequence[str]) -> List[str]:
    return [
        f"{name}: {format_seconds(record.duration(number), style)}"
        for number, name in enumerate(phase_names, start=1)
    ]


def session_share_text(
    record: SessionRecord,
    style: TimeDisplayStyle,
    phase_names: Sequence[str] = DEFAULT_PHASE_NAMES,
) -> str:
    """
    Plain-text block for one session::

        開始: 2025/01/31 7:05:09
        レーチャカ: 12秒
        プーラカ: 8秒
    """
    lines = [f"{START_LABEL}: {format_date_time(record.started_at)}"]
    lines.extend(_phase_lines(record, style, phase_names))
    return "\n".join(lines)


def day_share_text(
    day: date,
    records: Iterable[SessionRecord],
    style: TimeDisplayStyle,
    phase_names: Sequence[str] = DEFAULT_PHASE_NAMES,
) -> str:
    """Date label, a blank line, then every session of the day oldest first."""
    lines = [format_date_only(day), ""]
    for record in sorted(records, key=lambda r: r.started_at):
        lines.append(f"{START_LABEL}: {format_time_only(record.started_at)}")
        lines.extend(_phase_lines(record, style, phase_names))
        lines.append("")

    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines)
