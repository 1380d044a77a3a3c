"""
Tests for the minidb CLI.

Tests the typer-based commands: add, get, save, show, status, demo, version.
"""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from minidb.cli.main import app
from minidb.core.config import reset_settings
from minidb.core.types import Classification, Value
from minidb.persistence import Store
from minidb.persistence.errors import SnapshotWriteError


runner = CliRunner()


@pytest.fixture
def cli_dir(store_dir, monkeypatch):
    """Store directory for CLI runs, fsync disabled."""
    monkeypatch.setenv("MINIDB_SYNC_MODE", "none")
    reset_settings()
    return store_dir


def invoke(cli_dir, *args):
    return runner.invoke(app, ["--dir", str(cli_dir), *args])


def add_c(cli_dir):
    return invoke(cli_dir, "add", "C", "-o", "Dennis Ritchie", "-y", "1972", "-c", "static")


class TestVersionCommand:
    """Tests for version command."""

    def test_version_shows_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "minidb v" in result.stdout


class TestAddGetCommands:
    """Tests for add and get."""

    def test_add_persists(self, cli_dir):
        result = add_c(cli_dir)

        assert result.exit_code == 0
        assert "Stored" in result.stdout
        assert Store.load_or_create(cli_dir).get("C") == Value(
            originator="Dennis Ritchie", year=1972, classification=Classification.STATIC,
        )

    def test_classification_case_insensitive(self, cli_dir):
        result = invoke(cli_dir, "add", "Python", "-o", "Guido", "-y", "1989", "-c", "DYNAMIC")

        assert result.exit_code == 0
        assert Store.load_or_create(cli_dir).get("Python").classification is Classification.DYNAMIC

    def test_add_rejects_year_out_of_range(self, cli_dir):
        result = invoke(cli_dir, "add", "X", "-o", "x", "-y", "70000", "-c", "static")

        assert result.exit_code != 0

    def test_get_prints_json(self, cli_dir):
        add_c(cli_dir)

        result = invoke(cli_dir, "get", "C")

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {
            "key": "C",
            "originator": "Dennis Ritchie",
            "year": 1972,
            "classification": "static",
        }

    def test_get_missing_exits_1(self, cli_dir):
        result = invoke(cli_dir, "get", "Rust")

        assert result.exit_code == 1
        assert "Not found" in result.stdout


class TestSaveShowCommands:
    """Tests for save and show."""

    def test_save_compacts(self, cli_dir):
        add_c(cli_dir)

        result = invoke(cli_dir, "save")

        assert result.exit_code == 0
        assert "1 entries" in result.stdout
        assert (cli_dir / "replay.log").stat().st_size == 0
        assert (cli_dir / "db.snapshot").exists()

    def test_save_error_exits_1(self, cli_dir):
        add_c(cli_dir)

        with patch.object(Store, "save", side_effect=SnapshotWriteError("Failed to write snapshot: disk full")):
            result = invoke(cli_dir, "save")

        assert result.exit_code == 1
        assert "disk full" in result.stdout

    def test_show_table(self, cli_dir):
        add_c(cli_dir)

        result = invoke(cli_dir, "show")

        assert result.exit_code == 0
        assert "Dennis Ritchie" in result.stdout
        assert "1 entries" in result.stdout

    def test_show_json(self, cli_dir):
        add_c(cli_dir)

        result = invoke(cli_dir, "show", "--format", "json")

        assert result.exit_code == 0
        assert [row["key"] for row in json.loads(result.stdout)] == ["C"]

    def test_show_rejects_unknown_format(self, cli_dir):
        add_c(cli_dir)

        result = invoke(cli_dir, "show", "--format", "yaml")

        assert result.exit_code == 2
        assert "Dennis Ritchie" not in result.stdout


class TestStatusCommand:
    """Tests for status command."""

    def test_status_fresh(self, cli_dir):
        result = invoke(cli_dir, "status")

        assert result.exit_code == 0
        assert "minidb Status" in result.stdout
        assert "FRESH" in result.stdout

    def test_status_existing(self, cli_dir):
        add_c(cli_dir)

        result = invoke(cli_dir, "status")

        assert result.exit_code == 0
        assert "EXISTING" in result.stdout
        assert "replay.log" in result.stdout

    def test_corrupt_snapshot_exits_1(self, cli_dir):
        add_c(cli_dir)
        invoke(cli_dir, "save")
        (cli_dir / "db.snapshot").write_bytes(b"garbage")

        result = invoke(cli_dir, "status")

        assert result.exit_code == 1
        assert "Error" in result.stdout


class TestDemoCommand:
    """Tests for demo command."""

    def test_demo_runs_all_stages(self, cli_dir):
        result = invoke(cli_dir, "demo")

        assert result.exit_code == 0
        for title in (
            "After initial insertions",
            "Loaded from log only",
            "Loaded from snapshot only",
            "Loaded from snapshot + replay",
        ):
            assert title in result.stdout

        store = Store.load_or_create(cli_dir)
        assert [key for key, _ in store.items()] == ["C", "Go", "Python"]
        assert store.recovery.records_replayed == 1

    def test_demo_refuses_existing_store(self, cli_dir):
        add_c(cli_dir)

        result = invoke(cli_dir, "demo")

        assert result.exit_code == 1
        assert "--reset" in result.stdout

    def test_demo_reset(self, cli_dir):
        add_c(cli_dir)
        invoke(cli_dir, "add", "Rust", "-o", "Graydon Hoare", "-y", "2010", "-c", "static")

        result = invoke(cli_dir, "demo", "--reset")

        assert result.exit_code == 0
        assert Store.load_or_create(cli_dir).get("Rust") is None


class TestDataDirSetting:
    """The store directory falls back to MINIDB_DATA_DIR."""

    def test_env_data_dir(self, cli_dir, monkeypatch):
        monkeypatch.setenv("MINIDB_DATA_DIR", str(cli_dir))
        reset_settings()

        result = runner.invoke(app, ["add", "C", "-o", "Dennis Ritchie", "-y", "1972", "-c", "static"])

        assert result.exit_code == 0
        assert "C" in Store.load_or_create(cli_dir)
