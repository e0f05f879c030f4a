"""
Tests for the CLI argument parser and dispatch.
"""

from unittest.mock import patch

import pytest
import yaml

from winsetupkit import __version__
from winsetupkit.cli.parser import CLI, EXIT_CONFIG_ERROR, EXIT_FAILURES, EXIT_INTERRUPTED
from winsetupkit.core.exceptions import StateStoreError


@pytest.fixture
def settings_file(temp_dir):
    path = temp_dir / "settings.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "state_file": str(temp_dir / "state.json"),
                "temp_root": str(temp_dir / "scratch"),
                "log_file": None,
            }
        ),
        encoding="utf-8",
    )
    return path


class TestParser:
    """Test argument parsing."""

    def test_run_arguments(self):
        args = CLI().parse_args(["run", "--catalog", "apps.json", "--select", "git,7zip"])

        assert args.command == "run"
        assert str(args.catalog) == "apps.json"
        assert args.select == "git,7zip"
        assert args.no_package_manager is False

    def test_run_requires_catalog(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["run"])

    def test_select_and_defaults_exclusive(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["run", "--catalog", "a.json", "--select", "git", "--defaults"])

    def test_status_flags(self):
        args = CLI().parse_args(["status", "--resumable"])

        assert args.resumable is True
        assert args.clear is False

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            CLI().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestRun:
    """Test CLI.run dispatch and exit codes."""

    def test_no_command_prints_help(self, capsys):
        assert CLI().run([]) == EXIT_FAILURES
        assert "usage" in capsys.readouterr().out

    def test_missing_explicit_settings(self, temp_dir):
        """Test an explicit settings path must exist."""
        code = CLI().run(["--settings", str(temp_dir / "missing.yaml"), "status"])

        assert code == EXIT_CONFIG_ERROR

    def test_invalid_settings(self, temp_dir):
        path = temp_dir / "settings.yaml"
        path.write_text("retries_forever: true\n", encoding="utf-8")

        assert CLI().run(["--settings", str(path), "status"]) == EXIT_CONFIG_ERROR

    def test_dispatch_passes_settings(self, settings_file, temp_dir):
        with patch("winsetupkit.cli.commands.status.run", return_value=0) as mock_run:
            code = CLI().run(["--settings", str(settings_file), "status"])

        assert code == 0
        args = mock_run.call_args[0][0]
        assert args.engine_settings.state_file == temp_dir / "state.json"

    def test_no_package_manager_flag(self, settings_file, catalog_file):
        with patch("winsetupkit.cli.commands.run.run", return_value=0) as mock_run:
            CLI().run(
                [
                    "--settings",
                    str(settings_file),
                    "run",
                    "--catalog",
                    str(catalog_file),
                    "--no-package-manager",
                ]
            )

        assert mock_run.call_args[0][0].engine_settings.use_package_manager is False

    def test_keyboard_interrupt(self, settings_file):
        with patch("winsetupkit.cli.commands.status.run", side_effect=KeyboardInterrupt):
            assert CLI().run(["--settings", str(settings_file), "status"]) == EXIT_INTERRUPTED

    def test_engine_error(self, settings_file):
        """Test a fatal engine error exits with 1."""
        with patch(
            "winsetupkit.cli.commands.status.run", side_effect=StateStoreError("disk full")
        ):
            assert CLI().run(["--settings", str(settings_file), "status"]) == EXIT_FAILURES
