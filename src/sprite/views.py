"""Display model for a tag's projects and timers."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import BaseModel

from sprite.db import Project, Timer
from sprite.timefmt import (
    DEFAULT_TIMEZONE,
    DEFAULT_TIMEZONES,
    DurationPart,
    extract_duration_part,
    from_render_key,
    to_human_date,
    to_render_key,
)

logger = logging.getLogger(__name__)


class TimerView(BaseModel):
    id: int
    started: str
    ended: str | None
    hours: int
    minutes: int
    running: bool


class ProjectView(BaseModel):
    id: int
    name: str
    is_current: bool
    timers: list[TimerView]
    download_link: str
    download_file_name: str


class TimerPage(BaseModel):
    """Everything needed to render the timer page of one tag."""

    tag: str
    current_timezone: str
    timezones: list[str]
    uri_base: str
    projects: list[ProjectView]


def download_information(project: Project, timezone_key: str, uri_base: str) -> tuple[str, str]:
    """Return the (file name, link) pair for a project's CSV export."""
    file_name = f"{project.name}.csv"
    link = f"{uri_base}/export/{project.id}/{timezone_key}"
    return file_name, link


def _timer_view(timer: Timer, timezone_key: str) -> TimerView:
    duration = timer.duration or 0
    end_time = timer.end_time
    return TimerView(
        id=timer.id,
        started=to_human_date(timer.start_time, timezone_key),
        ended=to_human_date(end_time, timezone_key) if end_time is not None else None,
        hours=extract_duration_part(duration, DurationPart.HOUR),
        minutes=extract_duration_part(duration, DurationPart.MINUTE),
        running=timer.is_current,
    )


def build_timer_page(
    tag: str,
    projects: Mapping[Project, list[Timer]],
    *,
    timezone_key: str | None = None,
    uri_base: str,
) -> TimerPage:
    """Build the page model from `TimerStore.projects_by_tag` output.

    Args:
        tag: The tag key the page belongs to.
        projects: Timers grouped by project.
        timezone_key: Render key of the display timezone (default US-Pacific).
        uri_base: Base URL used for download links.

    Raises:
        FormatError: If the timezone key is unknown or a time cannot be
            rendered.
    """
    current = from_render_key(timezone_key) if timezone_key else DEFAULT_TIMEZONE
    current_key = to_render_key(current)

    project_views = []
    for project, timers in projects.items():
        file_name, link = download_information(project, current_key, uri_base)
        project_views.append(
            ProjectView(
                id=project.id,
                name=project.name,
                is_current=project.is_current,
                timers=[_timer_view(timer, current_key) for timer in timers],
                download_link=link,
                download_file_name=file_name,
            )
        )

    logger.debug("Rendering %d projects for tag %s", len(project_views), tag)
    return TimerPage(
        tag=tag,
        current_timezone=current_key,
        timezones=[
            to_render_key(tz) for tz in DEFAULT_TIMEZONES if to_render_key(tz) != current_key
        ],
        uri_base=uri_base,
        projects=project_views,
    )


def render_text(page: TimerPage) -> str:
    """Render a page model as plain text for the terminal."""
    lines = [f"Timers for {page.tag} ({page.current_timezone})"]

    if not page.projects:
        lines.append("")
        lines.append("No timers recorded.")
        return "\n".join(lines)

    for project in page.projects:
        marker = " *" if project.is_current else ""
        lines.append("")
        lines.append(f"{project.name}{marker}  [{project.download_file_name}: {project.download_link}]")
        for timer in project.timers:
            if timer.running:
                lines.append(f"  {timer.started}  running")
            else:
                lines.append(
                    f"  {timer.started} - {timer.ended}  {timer.hours}h {timer.minutes:2d}m"
                )

    return "\n".join(lines)
