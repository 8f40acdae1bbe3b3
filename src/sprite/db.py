"""SQLite timer store for sprite."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict


DEFAULT_PROJECT_NAME = "new-project"


class Project(BaseModel):
    """A named group of timers owned by a tag.

    Frozen so projects can key the mapping returned by
    `TimerStore.projects_by_tag`.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    unique_id: str
    is_current: bool


class Timer(BaseModel):
    """A single timed session.

    `duration` is None while the timer is running.
    """

    id: int
    unique_id: str
    project_id: int
    start_time: int
    is_current: bool
    duration: int | None = None

    @property
    def end_time(self) -> int | None:
        if self.duration is None:
            return None
        return self.start_time + self.duration


SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL,
    name TEXT NOT NULL,
    unique_id TEXT NOT NULL,
    is_current INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS timers (
    id INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL,
    unique_id TEXT NOT NULL,
    project_id INTEGER NOT NULL,
    start_time INTEGER NOT NULL,
    is_current INTEGER NOT NULL,
    duration INTEGER,
    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_projects_unique_id ON projects(unique_id);
CREATE INDEX IF NOT EXISTS idx_timers_project ON timers(project_id, start_time);
CREATE UNIQUE INDEX IF NOT EXISTS idx_projects_one_current
    ON projects(unique_id) WHERE is_current = 1;
CREATE UNIQUE INDEX IF NOT EXISTS idx_timers_one_current
    ON timers(unique_id, project_id) WHERE is_current = 1;
"""

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for timer store errors."""

    pass


class NotFoundError(StoreError):
    """Raised when a tag has no current project or timer."""

    pass


class UpdateConflictError(StoreError):
    """Raised when a write did not affect exactly one row."""

    def __init__(self, operation: str, tag: str, rowcount: int) -> None:
        super().__init__(
            f"{operation} for tag {tag} affected {rowcount} rows, expected 1"
        )
        self.operation = operation
        self.tag = tag
        self.rowcount = rowcount


class StoreConnectionError(StoreError):
    """Raised when the backing database is unavailable or unreadable."""

    pass


def utc_now_epoch() -> int:
    """Current UTC time as whole epoch seconds."""
    return int(datetime.now(timezone.utc).timestamp())


def _project_from_row(row: sqlite3.Row, prefix: str = "") -> Project:
    return Project(
        id=row[f"{prefix}id"],
        name=row[f"{prefix}name"],
        unique_id=row[f"{prefix}unique_id"],
        is_current=bool(row[f"{prefix}is_current"]),
    )


def _timer_from_row(row: sqlite3.Row) -> Timer:
    return Timer(
        id=row["id"],
        unique_id=row["unique_id"],
        project_id=row["project_id"],
        start_time=row["start_time"],
        is_current=bool(row["is_current"]),
        duration=row["duration"],
    )


class TimerStore:
    """SQLite-backed timer store.

    Not thread-safe. Each thread should have its own TimerStore instance.
    Start and stop times always come from `clock`, never from callers.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        *,
        clock: Callable[[], int] = utc_now_epoch,
    ) -> None:
        self._conn = conn
        self._clock = clock
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def __enter__(self) -> "TimerStore":
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    @contextmanager
    def _guard(self, operation: str, key: object) -> Iterator[None]:
        """Map database failures to StoreConnectionError.

        Integrity errors pass through untouched; callers translate those
        into conflicts.
        """
        try:
            yield
        except sqlite3.IntegrityError:
            raise
        except sqlite3.DatabaseError as e:
            raise StoreConnectionError(f"{operation} for {key} failed: {e}") from e

    @classmethod
    def open(
        cls,
        path: Path,
        *,
        clock: Callable[[], int] = utc_now_epoch,
        timeout: float = 5.0,
    ) -> TimerStore:
        """Open or create a database at the given path.

        Args:
            path: Database file.
            clock: Source of UTC epoch seconds.
            timeout: Seconds to wait for a locked database.

        Raises:
            StoreConnectionError: If the database cannot be opened or is not
                a SQLite database.
        """
        conn = None
        try:
            conn = sqlite3.connect(path, timeout=timeout)
            conn.row_factory = sqlite3.Row
            return cls(conn, clock=clock)
        except sqlite3.DatabaseError as e:
            if conn is not None:
                conn.close()
            raise StoreConnectionError(f"Unable to open database {path}: {e}") from e

    @classmethod
    def open_in_memory(cls, *, clock: Callable[[], int] = utc_now_epoch) -> TimerStore:
        """Create an in-memory database for testing."""
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        return cls(conn, clock=clock)

    def create_project(self, tag: str, name: str) -> int:
        """Create a project for a tag and make it the current one.

        The tag's previous current project, if any, is demoted in the same
        transaction.

        Returns:
            The new project ID.

        Raises:
            StoreError: If the insert did not create exactly one row.
        """
        with self._guard("create_project", f"tag {tag}"), self._conn:
            self._conn.execute(
                "UPDATE projects SET is_current = 0 WHERE unique_id = ? AND is_current = 1",
                (tag,),
            )
            cursor = self._conn.execute(
                "INSERT INTO projects (name, unique_id, is_current) VALUES (?, ?, 1)",
                (name, tag),
            )
            if cursor.rowcount != 1:
                raise StoreError(
                    f"create_project for tag {tag} inserted {cursor.rowcount} rows"
                )
        project_id = cursor.lastrowid
        logger.info("Created project %r (%s) for tag %s", name, project_id, tag)
        return project_id

    def current_project(self, tag: str) -> Project:
        """Get the current project for a tag.

        Raises:
            NotFoundError: If the tag has no current project.
        """
        with self._guard("current_project", f"tag {tag}"):
            row = self._conn.execute(
                "SELECT * FROM projects WHERE unique_id = ? AND is_current = 1",
                (tag,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"No current project for tag {tag}")
        return _project_from_row(row)

    def get_projects(self, tag: str) -> list[Project]:
        """Get every project of a tag, including projects without timers."""
        with self._guard("get_projects", f"tag {tag}"):
            rows = self._conn.execute(
                "SELECT * FROM projects WHERE unique_id = ? ORDER BY id",
                (tag,),
            ).fetchall()
        return [_project_from_row(row) for row in rows]

    def current_timer(self, tag: str) -> Timer:
        """Get the running timer of the tag's current project.

        Raises:
            NotFoundError: If no timer is running for the current project.
        """
        with self._guard("current_timer", f"tag {tag}"):
            row = self._conn.execute(
                """
                SELECT t.*
                FROM timers t
                INNER JOIN projects p ON p.id = t.project_id
                WHERE t.unique_id = ? AND t.is_current = 1 AND p.is_current = 1
                """,
                (tag,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"No current timer for tag {tag}")
        return _timer_from_row(row)

    def get_timer(self, timer_id: int) -> Timer:
        """Get a timer by ID.

        Raises:
            NotFoundError: If no such timer exists.
        """
        with self._guard("get_timer", f"timer {timer_id}"):
            row = self._conn.execute(
                "SELECT * FROM timers WHERE id = ?", (timer_id,)
            ).fetchone()
        if row is None:
            raise NotFoundError(f"No timer with id {timer_id}")
        return _timer_from_row(row)

    def toggle_current(self, tag: str) -> int:
        """Stop the tag's running timer, or start a new one.

        A tag without any project gets a default project first.

        Returns:
            ID of the stopped or started timer.

        Raises:
            UpdateConflictError: If the running timer could not be stopped
                or a second running timer would be created.
            StoreConnectionError: If the database is locked or unreadable.
        """
        try:
            timer = self.current_timer(tag)
        except NotFoundError:
            return self._start_timer(tag)
        return self._stop_timer(tag, timer)

    def _stop_timer(self, tag: str, timer: Timer) -> int:
        duration = self._clock() - timer.start_time
        with self._guard("toggle_current", f"tag {tag}"):
            cursor = self._conn.execute(
                """
                UPDATE timers
                SET duration = ?, is_current = 0
                WHERE id = ? AND is_current = 1
                """,
                (duration, timer.id),
            )
            if cursor.rowcount != 1:
                self._conn.rollback()
                raise UpdateConflictError("toggle_current", tag, cursor.rowcount)
            self._conn.commit()
        logger.info("Stopped timer %s for tag %s after %ss", timer.id, tag, duration)
        return timer.id

    def _start_timer(self, tag: str) -> int:
        try:
            project = self.current_project(tag)
        except NotFoundError:
            logger.info("Tag %s has no project, creating %r", tag, DEFAULT_PROJECT_NAME)
            self.create_project(tag, DEFAULT_PROJECT_NAME)
            project = self.current_project(tag)

        try:
            with self._guard("toggle_current", f"tag {tag}"), self._conn:
                cursor = self._conn.execute(
                    """
                    INSERT INTO timers (unique_id, project_id, start_time, is_current)
                    VALUES (?, ?, ?, 1)
                    """,
                    (tag, project.id, self._clock()),
                )
        except sqlite3.IntegrityError as e:
            # Another writer started a timer between our read and insert
            raise UpdateConflictError("toggle_current", tag, 0) from e
        timer_id = cursor.lastrowid
        logger.info("Started timer %s in project %s for tag %s", timer_id, project.id, tag)
        return timer_id

    def projects_by_tag(self, tag: str) -> dict[Project, list[Timer]]:
        """Get a tag's timers grouped by project.

        Projects without timers are omitted; use `get_projects` for the full
        list. Timers are ordered newest first, projects by ID.
        """
        with self._guard("projects_by_tag", f"tag {tag}"):
            rows = self._conn.execute(
                """
                SELECT
                    t.*,
                    p.id AS p_id,
                    p.name AS p_name,
                    p.unique_id AS p_unique_id,
                    p.is_current AS p_is_current
                FROM timers t
                INNER JOIN projects p ON p.id = t.project_id
                WHERE t.unique_id = ?
                ORDER BY p.id ASC, t.start_time DESC, t.id DESC
                """,
                (tag,),
            ).fetchall()
        result: dict[Project, list[Timer]] = {}
        for row in rows:
            project = _project_from_row(row, prefix="p_")
            result.setdefault(project, []).append(_timer_from_row(row))
        return result

    def exportable_timers_by_project(self, project_id: int) -> list[Timer]:
        """Get the stopped timers of a project, newest first.

        Only the owning tag's current project is exportable; any other
        project yields an empty list.
        """
        with self._guard("exportable_timers_by_project", f"project {project_id}"):
            rows = self._conn.execute(
                """
                SELECT t.*
                FROM timers t
                INNER JOIN projects p ON p.id = t.project_id
                WHERE t.project_id = ? AND t.is_current = 0 AND p.is_current = 1
                ORDER BY t.start_time DESC, t.id DESC
                """,
                (project_id,),
            ).fetchall()
        return [_timer_from_row(row) for row in rows]
