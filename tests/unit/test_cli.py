"""
Unit tests for the schemasync CLI interface.
"""

from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from schemasync import __version__
from schemasync.cli import handle_errors, main
from schemasync.database.facade import Database
from schemasync.exceptions import ConfigurationError


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


@pytest.fixture
def patched_database(backend):
    """Route Database.from_config to the in-memory backend."""
    def build(config, reporters=None):
        return Database(backend, config.session, reporters)

    with patch("schemasync.cli.Database.from_config", side_effect=build) as from_config:
        yield from_config


class TestCLI:
    """Test CLI commands."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_writes_valid_config(self, runner):
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["init", "-o", "schemasync.yaml"])
            assert result.exit_code == 0
            assert "Configuration file created" in result.output

            with open("schemasync.yaml") as f:
                data = yaml.safe_load(f)
            assert data["connection"]["database"] == "${POSTGRES_DB}"
            assert data["tables"][0]["name"] == "Page"

            result = runner.invoke(main, ["validate-config", "-c", "schemasync.yaml"])
            assert result.exit_code == 0
            assert "Configuration is valid" in result.output

    def test_init_keeps_existing_file_when_declined(self, runner):
        with runner.isolated_filesystem():
            with open("schemasync.yaml", "w") as f:
                f.write("tables: []\n")

            result = runner.invoke(main, ["init"], input="n\n")

            assert result.exit_code == 0
            with open("schemasync.yaml") as f:
                assert f.read() == "tables: []\n"

    def test_validate_config(self, runner, config_file):
        result = runner.invoke(main, ["validate-config", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "Declared Tables" in result.output
        assert "OldLog" in result.output

    def test_validate_config_rejects_unknown_type(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump({"tables": [{"name": "Page", "fields": {"Data": "Blob"}}]}))

        result = runner.invoke(main, ["validate-config", "-c", str(path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_validate_config_missing_file(self, runner):
        result = runner.invoke(main, ["validate-config", "-c", "missing.yaml"])
        assert result.exit_code != 0

    def test_sync(self, runner, config_file, backend, patched_database):
        result = runner.invoke(main, ["sync", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Schema update: success" in result.output
        assert "Table Page: created" in result.output
        assert backend.find("Page") == "Page"
        assert backend.tables["Page"]["indexes"]["TitleSearch"] == "fulltext (Title)"

    def test_sync_reports_failures(self, runner, config_file, backend, patched_database):
        backend.fail_tables.add("page")

        result = runner.invoke(main, ["sync", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Schema update: failed" in result.output

    def test_sync_dry_run(self, runner, config_file, backend, patched_database):
        backend.add_table("OldLog")

        result = runner.invoke(main, ["sync", "-c", str(config_file), "--dry-run"])

        assert result.exit_code == 0
        assert "Dry run mode" in result.output
        assert backend.calls_named("create_table") == []
        assert backend.calls_named("rename_table") == []

    def test_plan(self, runner, config_file, backend, patched_database):
        result = runner.invoke(main, ["plan", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "Schema update: skipped" in result.output
        assert "create Page" in result.output
        assert backend.calls_named("create_table") == []

    def test_plan_lists_obsolete_rename(self, runner, tmp_path, sample_config_data, backend, patched_database):
        backend.add_table("OldLog")
        sample_config_data["tables"] = [{"name": "OldLog", "obsolete": True}]
        path = tmp_path / "obsolete.yaml"
        path.write_text(yaml.safe_dump(sample_config_data))

        result = runner.invoke(main, ["plan", "-c", str(path)])

        assert result.exit_code == 0, result.output
        assert "No changes needed" not in result.output
        assert "rename OldLog to _obsolete_OldLog" in result.output
        assert backend.calls_named("rename_table") == []

    def test_sync_without_connection(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"tables": [{"name": "Page"}]}))

        result = runner.invoke(main, ["sync", "-c", str(path)])

        assert result.exit_code == 1
        assert "No database connection configured" in result.output


class TestHandleErrors:
    """Test the handle_errors decorator."""

    def test_schemasync_errors_exit_with_one(self):
        @handle_errors
        def failing():
            raise ConfigurationError("broken")

        with pytest.raises(SystemExit) as exc_info:
            failing()

        assert exc_info.value.code == 1

    def test_return_value_passes_through(self):
        @handle_errors
        def working():
            return 42

        assert working() == 42
