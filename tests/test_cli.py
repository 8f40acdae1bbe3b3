"""Tests for the CLI entry point."""

import csv
import io
import json

import pytest
from click.testing import CliRunner

from sprite.cli import main
from sprite.db import TimerStore

TAG_KEY = "ba7816bf8f01cfea"  # TagId.from_token("abc")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "timers.db"


def test_main_help():
    """Test that --help works and shows the group description."""
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "Sprite tag timer CLI" in result.output


def test_main_no_args():
    """Click groups exit with code 2 when no subcommand is provided."""
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 2
    assert "Usage:" in result.output


class TestToggleCommand:
    """Tests for the toggle command."""

    def test_toggle_starts_then_stops(self, db_path):
        runner = CliRunner()

        result = runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])
        assert result.exit_code == 0
        assert f"started for tag {TAG_KEY}" in result.output
        assert f"http://localhost:3000/timer/{TAG_KEY}" in result.output

        result = runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])
        assert result.exit_code == 0
        assert f"stopped for tag {TAG_KEY}" in result.output

    def test_toggle_creates_database_directory(self, db_path):
        """The database directory is created on first use."""
        result = CliRunner().invoke(main, ["toggle", "abc", "--db", str(db_path)])
        assert result.exit_code == 0
        assert db_path.exists()

    def test_toggle_hashes_token(self, db_path):
        """The raw token is never stored, only its key."""
        CliRunner().invoke(main, ["toggle", "abc", "--db", str(db_path)])

        with TimerStore.open(db_path) as store:
            assert store.get_projects("abc") == []
            assert len(store.get_projects(TAG_KEY)) == 1

    def test_uri_base_from_environment(self, db_path):
        result = CliRunner().invoke(
            main,
            ["toggle", "abc", "--db", str(db_path)],
            env={"URI_BASE": "https://timers.example.com"},
        )
        assert result.exit_code == 0
        assert f"https://timers.example.com/timer/{TAG_KEY}" in result.output

    def test_db_from_environment(self, db_path):
        result = CliRunner().invoke(main, ["toggle", "abc"], env={"SPRITE_DB": str(db_path)})
        assert result.exit_code == 0
        assert db_path.exists()

    def test_toggle_non_sqlite_database(self, tmp_path):
        """A corrupt database file reports an error instead of crashing."""
        db_path = tmp_path / "timers.db"
        db_path.write_bytes(b"this is not a database" * 100)

        result = CliRunner().invoke(main, ["toggle", "abc", "--db", str(db_path)])
        assert result.exit_code == 1
        assert "Error: Unable to open database" in result.output
        assert isinstance(result.exception, SystemExit)

    def test_toggle_unusable_database_directory(self, tmp_path):
        """A database directory that cannot be created reports an error."""
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")

        result = CliRunner().invoke(
            main, ["toggle", "abc", "--db", str(blocker / "timers.db")]
        )
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert isinstance(result.exception, SystemExit)


class TestProjectCommands:
    """Tests for create-project and projects."""

    def test_create_and_list_projects(self, db_path):
        runner = CliRunner()
        result = runner.invoke(main, ["create-project", TAG_KEY, "alpha", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "Created project 1: alpha" in result.output

        runner.invoke(main, ["create-project", TAG_KEY, "beta", "--db", str(db_path)])
        result = runner.invoke(main, ["projects", TAG_KEY, "--db", str(db_path)])

        assert result.exit_code == 0
        lines = result.output.rstrip("\n").splitlines()
        assert lines == ["     1  alpha", "*    2  beta"]

    def test_projects_unknown_tag(self, db_path):
        runner = CliRunner()
        runner.invoke(main, ["create-project", TAG_KEY, "alpha", "--db", str(db_path)])
        result = runner.invoke(main, ["projects", "nobody", "--db", str(db_path)])
        assert result.exit_code == 0
        assert "No projects for tag nobody" in result.output

    def test_create_project_unusable_database_directory(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")

        result = CliRunner().invoke(
            main, ["create-project", TAG_KEY, "alpha", "--db", str(blocker / "timers.db")]
        )
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_projects_no_database(self, db_path):
        result = CliRunner().invoke(main, ["projects", TAG_KEY, "--db", str(db_path)])
        assert result.exit_code == 1
        assert "No database found" in result.output


class TestShowCommand:
    """Tests for the show command."""

    def test_show_text(self, db_path):
        runner = CliRunner()
        runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])

        result = runner.invoke(main, ["show", TAG_KEY, "--db", str(db_path)])
        assert result.exit_code == 0
        assert f"Timers for {TAG_KEY} (US-Pacific)" in result.output
        assert "new-project *" in result.output
        assert "running" in result.output

    def test_show_json(self, db_path):
        runner = CliRunner()
        runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])
        runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])

        result = runner.invoke(
            main,
            ["show", TAG_KEY, "--db", str(db_path), "--json", "--timezone", "US-Eastern"],
        )
        assert result.exit_code == 0
        page = json.loads(result.output)
        assert page["tag"] == TAG_KEY
        assert page["current_timezone"] == "US-Eastern"
        assert page["projects"][0]["download_link"] == "http://localhost:3000/export/1/US-Eastern"
        assert page["projects"][0]["timers"][0]["running"] is False

    def test_show_bad_timezone(self, db_path):
        runner = CliRunner()
        runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])

        result = runner.invoke(
            main, ["show", TAG_KEY, "--db", str(db_path), "--timezone", "Mars-Olympus"]
        )
        assert result.exit_code == 1
        assert "Unable to parse timezone" in result.output


class TestExportCommand:
    """Tests for the export command."""

    def test_export_to_file(self, db_path, tmp_path):
        runner = CliRunner()
        runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])
        runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])
        runner.invoke(main, ["toggle", "abc", "--db", str(db_path)])

        output = tmp_path / "export.csv"
        result = runner.invoke(
            main,
            ["export", "1", "--db", str(db_path), "--timezone", "UTC", "-o", str(output)],
        )
        assert result.exit_code == 0
        assert "Exported 1 timers" in result.output

        rows = list(csv.DictReader(io.StringIO(output.read_text())))
        assert len(rows) == 1
        assert set(rows[0]) == {"start_time", "end_time", "duration"}

    def test_export_to_stdout(self, db_path):
        runner = CliRunner()
        runner.invoke(main, ["create-project", TAG_KEY, "alpha", "--db", str(db_path)])

        result = runner.invoke(main, ["export", "1", "--db", str(db_path)])
        assert result.exit_code == 0
        assert result.output == "start_time,end_time,duration\n"

    def test_export_bad_timezone(self, db_path):
        runner = CliRunner()
        runner.invoke(main, ["create-project", TAG_KEY, "alpha", "--db", str(db_path)])

        result = runner.invoke(
            main, ["export", "1", "--db", str(db_path), "--timezone", "Mars-Olympus"]
        )
        assert result.exit_code == 1
        assert "Error:" in result.output
