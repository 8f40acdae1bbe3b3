"""CLI entry point for sprite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from sprite.db import StoreError, TimerStore
from sprite.export import export_timers
from sprite.timefmt import FormatError
from sprite.uid import TagId
from sprite.views import build_timer_page, render_text

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "sprite" / "timers.db"
DEFAULT_URI_BASE = "http://localhost:3000"

logger = logging.getLogger(__name__)


def _fail(error: Exception) -> NoReturn:
    logger.debug("Command failed", exc_info=error)
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug)")
def main(verbose: int) -> None:
    """Sprite tag timer CLI."""
    levels = {0: logging.WARNING, 1: logging.INFO}
    logging.basicConfig(
        level=levels.get(verbose, logging.DEBUG),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command("toggle")
@click.argument("token")
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=DEFAULT_DB_PATH,
    envvar="SPRITE_DB",
    help="Path to SQLite database",
)
@click.option(
    "--uri-base",
    default=DEFAULT_URI_BASE,
    envvar="URI_BASE",
    help="Base URL of the timer pages",
)
def toggle_command(token: str, db: Path, uri_base: str) -> None:
    """Start or stop the timer for a tag.

    TOKEN is the raw value read from the tag. It is hashed into the tag key
    used by every other command.

    Example:
        sprite toggle 04:a2:3b:c1
    """
    tag = TagId.from_token(token)
    try:
        # Ensure database directory exists
        db.parent.mkdir(parents=True, exist_ok=True)
        with TimerStore.open(db) as store:
            timer_id = store.toggle_current(tag)
            timer = store.get_timer(timer_id)
    except (StoreError, OSError) as e:
        _fail(e)

    state = "started" if timer.is_current else "stopped"
    click.echo(f"Timer {timer_id} {state} for tag {tag}")
    click.echo(f"{uri_base}/timer/{tag}")


@main.command("create-project")
@click.argument("tag")
@click.argument("name")
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=DEFAULT_DB_PATH,
    envvar="SPRITE_DB",
    help="Path to SQLite database",
)
def create_project_command(tag: str, name: str, db: Path) -> None:
    """Create a project for TAG and make it current."""
    try:
        db.parent.mkdir(parents=True, exist_ok=True)
        with TimerStore.open(db) as store:
            project_id = store.create_project(tag, name)
    except (StoreError, OSError) as e:
        _fail(e)

    click.echo(f"Created project {project_id}: {name}")


@main.command("projects")
@click.argument("tag")
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=DEFAULT_DB_PATH,
    envvar="SPRITE_DB",
    help="Path to SQLite database",
)
def projects_command(tag: str, db: Path) -> None:
    """List every project of TAG. The current project is marked with '*'."""
    if not db.exists():
        click.echo("No database found", err=True)
        sys.exit(1)

    try:
        with TimerStore.open(db) as store:
            projects = store.get_projects(tag)
    except StoreError as e:
        _fail(e)

    if not projects:
        click.echo(f"No projects for tag {tag}")
        return

    for project in projects:
        marker = "*" if project.is_current else " "
        click.echo(f"{marker} {project.id:>4}  {project.name}")


@main.command("show")
@click.argument("tag")
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=DEFAULT_DB_PATH,
    envvar="SPRITE_DB",
    help="Path to SQLite database",
)
@click.option(
    "--timezone",
    "timezone_key",
    help="Display timezone as a render key, e.g. US-Eastern (default: US-Pacific)",
)
@click.option(
    "--uri-base",
    default=DEFAULT_URI_BASE,
    envvar="URI_BASE",
    help="Base URL used for export links",
)
@click.option(
    "--json",
    "output_json",
    is_flag=True,
    help="Output as JSON",
)
def show_command(
    tag: str, db: Path, timezone_key: str | None, uri_base: str, output_json: bool
) -> None:
    """Show the timers of TAG grouped by project."""
    if not db.exists():
        click.echo("No database found", err=True)
        sys.exit(1)

    try:
        with TimerStore.open(db) as store:
            projects = store.projects_by_tag(tag)
        page = build_timer_page(
            tag, projects, timezone_key=timezone_key, uri_base=uri_base
        )
    except (StoreError, FormatError) as e:
        _fail(e)

    if output_json:
        click.echo(page.model_dump_json(indent=2))
    else:
        click.echo(render_text(page))


@main.command("export")
@click.argument("project_id", type=int)
@click.option(
    "--db",
    type=click.Path(path_type=Path),
    default=DEFAULT_DB_PATH,
    envvar="SPRITE_DB",
    help="Path to SQLite database",
)
@click.option(
    "--timezone",
    "timezone_key",
    default="US-Pacific",
    help="Timezone as a render key, e.g. US-Eastern",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    help="Write the CSV to a file instead of stdout",
)
def export_command(
    project_id: int, db: Path, timezone_key: str, output: Path | None
) -> None:
    """Export the finished timers of PROJECT_ID as CSV.

    Example:
        sprite export 3 --timezone US-Eastern -o project.csv
    """
    if not db.exists():
        click.echo("No database found", err=True)
        sys.exit(1)

    try:
        with TimerStore.open(db) as store:
            timers = store.exportable_timers_by_project(project_id)
        data = export_timers(timers, timezone_key)
    except (StoreError, FormatError) as e:
        _fail(e)

    if output is None:
        click.echo(data.decode(), nl=False)
    else:
        try:
            output.write_bytes(data)
        except OSError as e:
            _fail(e)
        click.echo(f"Exported {len(timers)} timers to {output}", err=True)


if __name__ == "__main__":
    main()
