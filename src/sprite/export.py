"""CSV export of completed timers."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from sprite.db import Timer
from sprite.timefmt import (
    EXPORT_TIME_FORMAT,
    FormatError,
    format_duration,
    format_time,
    from_render_key,
)

EXPORT_FIELDS = ("start_time", "end_time", "duration")


def export_timers(timers: Iterable[Timer], timezone_key: str) -> bytes:
    """Serialize timers into CSV bytes, one row per timer in input order.

    Args:
        timers: Timers to export, normally from
            `TimerStore.exportable_timers_by_project`.
        timezone_key: Render key of the timezone, e.g. "US-Pacific".

    Returns:
        UTF-8 encoded CSV including a header row.

    Raises:
        FormatError: If the timezone or any timer cannot be formatted,
            including timers with a negative duration. No partial output is
            produced.
    """
    timezone = from_render_key(timezone_key)

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_FIELDS, lineterminator="\n")
    writer.writeheader()

    for timer in timers:
        if timer.duration is not None and timer.duration < 0:
            raise FormatError(
                f"Timer {timer.id} has a negative duration: {timer.duration}"
            )
        duration = timer.duration or 0
        end_time = timer.end_time
        writer.writerow({
            "start_time": format_time(timer.start_time, timezone, EXPORT_TIME_FORMAT),
            "end_time": (
                format_time(end_time, timezone, EXPORT_TIME_FORMAT)
                if duration > 0 and end_time is not None
                else ""
            ),
            "duration": format_duration(duration) if duration > 0 else "",
        })

    return buffer.getvalue().encode()
