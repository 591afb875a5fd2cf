"""
Tests for the lunar-birthday CLI.

Uses Click's CliRunner for testing CLI commands.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from lunar_birthday.cli.main import cli
from lunar_birthday.core.exceptions import GraphAPIError


class FakeClient:
    """Async calendar client double usable as an async context manager."""

    def __init__(self, fail_subjects: set[str] | None = None):
        self.fail_subjects = fail_subjects or set()
        self.calendars: list[tuple[str, str]] = []
        self.events: list[str] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def create_calendar(self, name: str, color: str = "auto"):
        self.calendars.append((name, color))
        return {"id": "cal-1"}

    async def create_event(self, calendar_id: str, subject: str, start: str, end: str, **kwargs):
        self.events.append(subject)
        if subject in self.fail_subjects:
            raise GraphAPIError("server error", operation="create_event", status_code=500)
        return {"id": f"evt-{len(self.events)}"}

    async def get_calendars(self):
        return [{"id": "cal-1", "name": "Calendar", "color": "auto"}]

    async def get_events(self, calendar_id: str):
        return [{"subject": "Alice's 35th lunar birthday", "start": {"dateTime": "2024-04-23T00:00:00"}}]


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "lunar_birthday.yaml"
    path.write_text(
        "graph:\n"
        "  client_id: 72000ad4-3e42-4653-ac5e-e6bc7d28c773\n"
        f"  token_cache_path: {tmp_path / 'cache.json'}\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def records_file(tmp_path: Path) -> Path:
    path = tmp_path / "birthdays.json"
    path.write_text(json.dumps({"Alice": "1990-3-15"}), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_env():
    """Keep real LUNAR_BIRTHDAY_* variables and .env files out of tests."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("LUNAR_BIRTHDAY_")}
    with patch.dict(os.environ, env, clear=True):
        with patch("lunar_birthday.core.config.load_dotenv"):
            yield


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Lunar Birthday Calendar" in result.output
        for command in ("sync", "preview", "convert", "calendars", "events", "logout"):
            assert command in result.output

    def test_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output


class TestOfflineCommands:
    """Commands that never sign in."""

    def test_convert(self, runner: CliRunner):
        result = runner.invoke(cli, ["convert", "2000-1-1", "--year", "2026"])

        assert result.exit_code == 0
        assert "2026-02-17" in result.output
        assert "农历正月初一" in result.output
        assert "age 27" in result.output

    def test_convert_malformed(self, runner: CliRunner):
        result = runner.invoke(cli, ["convert", "2000-1"])
        assert result.exit_code == 1
        assert "YYYY-M-D" in result.output

    def test_preview_limit(self, runner: CliRunner, records_file: Path):
        result = runner.invoke(cli, ["preview", str(records_file), "--year", "2024", "--limit", "2"])

        assert result.exit_code == 0
        assert "Alice's 35th lunar birthday" in result.output
        assert "Alice's 36th lunar birthday" in result.output
        assert "Alice's 37th lunar birthday" not in result.output

    def test_preview_json(self, runner: CliRunner, records_file: Path):
        result = runner.invoke(cli, ["preview", str(records_file), "--year", "2024", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert len(data) == 87
        assert data[-1]["year"] == 2110

    def test_preview_past_horizon(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "old.json"
        path.write_text(json.dumps({"Old": "1900-1-1"}), encoding="utf-8")

        result = runner.invoke(cli, ["preview", str(path), "--year", "2024"])

        assert result.exit_code == 0
        assert "No occurrences" in result.output

    def test_preview_missing_file(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(cli, ["preview", str(tmp_path / "none.json")])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestSync:
    """The main sync flow with a fake Graph client."""

    def test_dry_run_needs_no_sign_in(self, runner: CliRunner, records_file: Path):
        with patch("lunar_birthday.cli.main.initialize_graph") as mock_init:
            result = runner.invoke(cli, ["sync", str(records_file), "--year", "2024", "--dry-run"])

        assert result.exit_code == 0
        assert "Dry run: 87 events from 1 records" in result.output
        mock_init.assert_not_called()

    def test_sync_success(self, runner: CliRunner, config_file: Path, records_file: Path):
        client = FakeClient()
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=client) as mock_init:
            result = runner.invoke(
                cli,
                ["-c", str(config_file), "sync", str(records_file), "--year", "2024", "--horizon", "36"],
            )

        assert result.exit_code == 0, result.output
        assert client.calendars == [("LunarBirthday", "lightRed")]
        assert client.events == [
            "Alice's 35th lunar birthday",
            "Alice's 36th lunar birthday",
            "Alice's 37th lunar birthday",
        ]
        assert "Event created with id evt-1" in result.output
        assert "3 created, 0 failed, 0 skipped in 2 windows" in result.output
        settings = mock_init.call_args[0][0]
        assert settings.client_id == "72000ad4-3e42-4653-ac5e-e6bc7d28c773"
        assert mock_init.call_args.kwargs["time_zone"] == "Asia/Shanghai"

    def test_sync_failure_exit_code(self, runner: CliRunner, config_file: Path, records_file: Path):
        client = FakeClient(fail_subjects={"Alice's 36th lunar birthday"})
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=client):
            result = runner.invoke(
                cli,
                ["-c", str(config_file), "sync", str(records_file), "--year", "2024", "--horizon", "36"],
            )

        assert result.exit_code == 1
        assert "Error create event: Alice's 36th lunar birthday" in result.output
        assert "2 created, 1 failed" in result.output

    def test_sync_abort_on_error(self, runner: CliRunner, config_file: Path, records_file: Path):
        client = FakeClient(fail_subjects={"Alice's 35th lunar birthday"})
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=client):
            result = runner.invoke(
                cli,
                [
                    "-c", str(config_file), "sync", str(records_file),
                    "--year", "2024", "--horizon", "40", "--abort-on-error",
                ],
            )

        assert result.exit_code == 1
        assert len(client.events) == 2
        assert "5 skipped" in result.output

    def test_sync_calendar_options(self, runner: CliRunner, config_file: Path, records_file: Path):
        client = FakeClient()
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=client):
            runner.invoke(
                cli,
                [
                    "-c", str(config_file), "sync", str(records_file), "--year", "2024",
                    "--horizon", "34", "--calendar-name", "Family", "--color", "lightBlue",
                ],
            )

        assert client.calendars == [("Family", "lightBlue")]

    def test_sync_without_client_id(self, runner: CliRunner, tmp_path: Path, records_file: Path):
        """Missing configuration stops before any sign-in attempt."""
        config = tmp_path / "empty.yaml"
        config.write_text("{}", encoding="utf-8")

        with patch("lunar_birthday.graph.auth.msal") as mock_msal:
            result = runner.invoke(cli, ["-c", str(config), "sync", str(records_file), "--year", "2024"])

        assert result.exit_code == 1
        assert "graph.client_id" in result.output
        mock_msal.PublicClientApplication.assert_not_called()


class TestGraphCommands:
    """calendars / events / logout"""

    def test_calendars(self, runner: CliRunner, config_file: Path):
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=FakeClient()):
            result = runner.invoke(cli, ["-c", str(config_file), "calendars"])

        assert result.exit_code == 0
        assert "Calendar  [auto]  cal-1" in result.output

    def test_events(self, runner: CliRunner, config_file: Path):
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=FakeClient()):
            result = runner.invoke(cli, ["-c", str(config_file), "events", "cal-1"])

        assert result.exit_code == 0
        assert "2024-04-23  Alice's 35th lunar birthday" in result.output

    def test_logout_without_cache(self, runner: CliRunner, config_file: Path):
        with patch("lunar_birthday.graph.auth.msal") as mock_msal:
            mock_msal.PublicClientApplication.return_value.get_accounts.return_value = []
            result = runner.invoke(cli, ["-c", str(config_file), "logout"])

        assert result.exit_code == 0
        assert "No token cache" in result.output

    def test_logout_deletes_cache(self, runner: CliRunner, config_file: Path, tmp_path: Path):
        (tmp_path / "cache.json").write_text("{}", encoding="utf-8")
        with patch("lunar_birthday.graph.auth.msal") as mock_msal:
            mock_msal.PublicClientApplication.return_value.get_accounts.return_value = []
            result = runner.invoke(cli, ["-c", str(config_file), "logout"])

        assert result.exit_code == 0
        assert "Token cache deleted." in result.output
        assert not (tmp_path / "cache.json").exists()

    def test_device_code_message_printed(self):
        """The device code callback echoes the message."""
        from lunar_birthday.cli.main import print_device_code

        with patch("lunar_birthday.cli.main.click.echo") as mock_echo:
            print_device_code("Open https://microsoft.com/devicelogin and enter ABC")
        mock_echo.assert_called_once_with("Open https://microsoft.com/devicelogin and enter ABC")


class TestErrorMapping:
    """Package errors become exit code 1."""

    def test_graph_error_in_calendars(self, runner: CliRunner, config_file: Path):
        class Failing(FakeClient):
            async def get_calendars(self):
                raise GraphAPIError("Access is denied.", operation="get_calendars", status_code=403)

        with patch("lunar_birthday.cli.main.initialize_graph", return_value=Failing()):
            result = runner.invoke(cli, ["-c", str(config_file), "calendars"])

        assert result.exit_code == 1
        assert "HTTP 403" in result.output


class TestConfigChecks:
    """Bad settings stop sync before sign-in or any remote change."""

    @pytest.fixture
    def bad_config(self, tmp_path: Path):
        def _write(section: str, key: str, value: str) -> Path:
            path = tmp_path / "bad.yaml"
            path.write_text(
                "graph:\n"
                "  client_id: 72000ad4-3e42-4653-ac5e-e6bc7d28c773\n"
                f"{section}:\n"
                f"  {key}: {value}\n",
                encoding="utf-8",
            )
            return path

        return _write

    @pytest.mark.parametrize(
        "section,key,value",
        [
            ("event", "show_as", "bogus"),
            ("event", "importance", "urgent"),
            ("calendar", "color", "red"),
            ("sync", "short_month_rule", "bogus"),
        ],
    )
    def test_invalid_value_rejected(
        self, runner: CliRunner, bad_config, records_file: Path, section: str, key: str, value: str
    ):
        client = FakeClient()
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=client) as mock_init:
            result = runner.invoke(
                cli, ["-c", str(bad_config(section, key, value)), "sync", str(records_file), "--year", "2024"]
            )

        assert result.exit_code == 1
        assert f"{section}.{key}" in result.output
        assert "Traceback" not in result.output
        mock_init.assert_not_called()
        assert client.calendars == []

    def test_invalid_value_rejected_in_dry_run(self, runner: CliRunner, bad_config, records_file: Path):
        config = bad_config("sync", "short_month_rule", "bogus")
        result = runner.invoke(cli, ["-c", str(config), "sync", str(records_file), "--dry-run"])

        assert result.exit_code == 1
        assert "sync.short_month_rule" in result.output
        assert not isinstance(result.exception, ValueError)


class TestShortMonthBirthdays:
    """A lunar day-30 birthday next to a regular one."""

    @pytest.fixture
    def mixed_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "mixed.json"
        path.write_text(json.dumps({"Alice": "1990-3-15", "Carol": "1990-1-30"}), encoding="utf-8")
        return path

    def test_dry_run_lists_skipped_years(self, runner: CliRunner, mixed_file: Path):
        result = runner.invoke(cli, ["sync", str(mixed_file), "--year", "2024", "--dry-run"])

        assert result.exit_code == 0
        assert "Skipped Carol 2024" in result.output
        assert "from 2 records" in result.output

    def test_dry_run_clamp(self, runner: CliRunner, mixed_file: Path):
        result = runner.invoke(
            cli, ["sync", str(mixed_file), "--year", "2024", "--dry-run", "--short-month", "clamp"]
        )

        assert result.exit_code == 0
        assert "Skipped" not in result.output
        assert "Dry run: 174 events from 2 records" in result.output

    def test_sync_creates_other_events(self, runner: CliRunner, config_file: Path, mixed_file: Path):
        client = FakeClient()
        with patch("lunar_birthday.cli.main.initialize_graph", return_value=client):
            result = runner.invoke(cli, ["-c", str(config_file), "sync", str(mixed_file), "--year", "2024"])

        assert result.exit_code == 1
        assert "Alice's 121th lunar birthday" in client.events
        assert "Skipped Carol 2024" in result.output
        assert "Unconverted:" in result.output

    def test_preview_lists_skipped_years(self, runner: CliRunner, mixed_file: Path):
        result = runner.invoke(cli, ["preview", str(mixed_file), "--year", "2024", "--limit", "1"])

        assert result.exit_code == 0
        assert "Skipped Carol 2024" in result.output
        assert "Alice's 35th lunar birthday" in result.output
