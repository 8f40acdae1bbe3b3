"""Timezone-aware rendering of stored epoch times and durations."""

from __future__ import annotations

import enum
from datetime import datetime, tzinfo

import pytz


DEFAULT_TIMEZONES = (
    pytz.timezone("US/Pacific"),
    pytz.timezone("US/Mountain"),
    pytz.timezone("US/Central"),
    pytz.timezone("US/Eastern"),
)

DEFAULT_TIMEZONE = DEFAULT_TIMEZONES[0]

# Equivalent to strftime's "%F %H:%M", spelled out for platforms without %F
EXPORT_TIME_FORMAT = "%Y-%m-%d %H:%M"
HUMAN_TIME_FORMAT = "%a, %Y-%m-%d %H:%M"

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE


class FormatError(ValueError):
    """Raised when a time or timezone cannot be rendered."""

    pass


class DurationPart(enum.Enum):
    HOUR = "hours"
    MINUTE = "minutes"


def _zone_name(timezone: tzinfo | str) -> str:
    if isinstance(timezone, str):
        return timezone
    return getattr(timezone, "zone", None) or str(timezone)


def to_render_key(timezone: tzinfo | str) -> str:
    """Convert US/Pacific -> US-Pacific so the zone fits in one path segment."""
    return _zone_name(timezone).replace("/", "-")


def from_render_key(key: str) -> tzinfo:
    """Convert a rendered US-Pacific back into the US/Pacific timezone.

    Zone names that themselves contain a hyphen do not survive the round
    trip.

    Raises:
        FormatError: If the key does not name a known timezone.
    """
    zone = key.replace("-", "/")
    try:
        return pytz.timezone(zone)
    except pytz.exceptions.UnknownTimeZoneError as e:
        raise FormatError(f"Unable to parse timezone: {key}") from e


def format_time(epoch_seconds: int, timezone: tzinfo, pattern: str) -> str:
    """Format UTC epoch seconds as local time in the given timezone.

    Args:
        epoch_seconds: Seconds since the Unix epoch.
        timezone: Timezone to render in.
        pattern: strftime pattern.

    Returns:
        The formatted local time.

    Raises:
        FormatError: If no local time exists for the timestamp.
    """
    try:
        utc_dt = datetime.fromtimestamp(epoch_seconds, tz=pytz.utc)
        local_dt = utc_dt.astimezone(timezone)
    except (OverflowError, OSError, ValueError) as e:
        raise FormatError(
            f"Unable to resolve {epoch_seconds} in {_zone_name(timezone)}: {e}"
        ) from e
    return local_dt.strftime(pattern)


def to_human_date(epoch_seconds: int, render_key: str) -> str:
    """Format epoch seconds for display, e.g. 'Tue, 2023-09-05 14:30'."""
    return format_time(epoch_seconds, from_render_key(render_key), HUMAN_TIME_FORMAT)


def extract_duration_part(seconds: int, part: DurationPart) -> int:
    """Extract the hours or minutes portion of a duration in seconds.

    Minutes are rounded down, and a remainder of 60 seconds or less counts
    as 0 minutes.

    Raises:
        FormatError: If the duration is negative.
    """
    if seconds < 0:
        raise FormatError(f"Duration cannot be negative: {seconds}")

    if part is DurationPart.HOUR:
        return seconds // SECONDS_PER_HOUR

    remainder = seconds % SECONDS_PER_HOUR
    if remainder > SECONDS_PER_MINUTE:
        return remainder // SECONDS_PER_MINUTE
    return 0


def format_duration(seconds: int) -> str:
    """Format a duration as 'H:M', e.g. 2:35."""
    hours = extract_duration_part(seconds, DurationPart.HOUR)
    minutes = extract_duration_part(seconds, DurationPart.MINUTE)
    return f"{hours}:{minutes}"
