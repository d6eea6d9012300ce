import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from twist_cli.auth.client.models.errors import (
    AuthorizationTimeoutError,
    PortInUseError,
)
from twist_cli.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def config_home(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    monkeypatch.delenv("TWIST_API_TOKEN", raising=False)
    return tmp_path


def config_file(config_home):
    return config_home / "twist-cli" / "config.json"


def read_config(config_home):
    return json.loads(config_file(config_home).read_text())


class TestAuthLogin:
    def test_login_saves_token(self, config_home):
        # Arrange
        with patch("twist_cli.cli.login", AsyncMock(return_value="oauth-token-123")):
            # Act
            result = runner.invoke(app, ["auth", "login"])

        # Assert
        assert result.exit_code == 0
        assert "Logged in successfully" in result.output
        assert read_config(config_home) == {"token": "oauth-token-123"}

    def test_port_in_use_prints_remedy(self, config_home):
        # Arrange
        with patch("twist_cli.cli.login", AsyncMock(side_effect=PortInUseError(8766))):
            # Act
            result = runner.invoke(app, ["auth", "login"])

        # Assert
        assert result.exit_code == 1
        assert "Port 8766 is already in use" in result.output
        assert "Close the process listening on port 8766" in result.output
        assert not (config_home / "twist-cli" / "config.json").exists()

    def test_unusable_server_token_is_reported(self, config_home):
        # Arrange
        with patch("twist_cli.cli.login", AsyncMock(return_value="short")):
            # Act
            result = runner.invoke(app, ["auth", "login"])

        # Assert
        assert result.exit_code == 1
        assert "unusable token" in result.output
        assert "tw auth token <token>" in result.output
        assert not config_file(config_home).exists()

    def test_timeout_suggests_rerun(self):
        # Arrange
        with patch(
            "twist_cli.cli.login",
            AsyncMock(side_effect=AuthorizationTimeoutError(180.0)),
        ):
            # Act
            result = runner.invoke(app, ["auth", "login"])

        # Assert
        assert result.exit_code == 1
        assert "timed out" in result.output
        assert "tw auth login" in result.output


class TestAuthToken:
    def test_token_is_saved(self, config_home):
        result = runner.invoke(app, ["auth", "token", "  manual-token-123  "])

        assert result.exit_code == 0
        assert "API token saved successfully" in result.output
        assert read_config(config_home) == {"token": "manual-token-123"}

    def test_short_token_is_rejected(self, config_home):
        result = runner.invoke(app, ["auth", "token", "short"])

        assert result.exit_code == 1
        assert "at least 10 characters" in result.output


class TestAuthLogout:
    def test_logout_removes_token(self, config_home):
        # Arrange
        runner.invoke(app, ["auth", "token", "manual-token-123"])

        # Act
        result = runner.invoke(app, ["auth", "logout"])

        # Assert
        assert result.exit_code == 0
        assert "Logged out" in result.output
        assert not (config_home / "twist-cli" / "config.json").exists()


class TestBrokenConfigFile:
    @pytest.fixture(autouse=True)
    def broken_config(self, config_home):
        path = config_file(config_home)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        return path

    def test_login_reports_broken_config(self, broken_config):
        # Arrange
        with patch("twist_cli.cli.login", AsyncMock(return_value="oauth-token-123")):
            # Act
            result = runner.invoke(app, ["auth", "login"])

        # Assert
        assert result.exit_code == 1
        assert "is invalid: not valid JSON" in result.output
        assert f"Fix or delete {broken_config}" in result.output
        assert "tw auth token <token>" in result.output
        assert broken_config.read_text() == "{not json"

    @pytest.mark.parametrize(
        "args",
        [
            ["auth", "token", "manual-token-123"],
            ["auth", "status"],
            ["auth", "logout"],
        ],
    )
    def test_other_commands_report_broken_config(self, broken_config, args):
        result = runner.invoke(app, args)

        assert result.exit_code == 1
        assert f"Fix or delete {broken_config}" in result.output
        assert broken_config.read_text() == "{not json"


class TestAuthStatus:
    def test_token_from_file(self, config_home):
        # Arrange
        runner.invoke(app, ["auth", "token", "manual-token-123"])

        # Act
        result = runner.invoke(app, ["auth", "status"])

        # Assert
        assert result.exit_code == 0
        assert "Authenticated" in result.output
        assert str(config_file(config_home)) in result.output
        assert "manual-token-123" not in result.output

    def test_token_from_environment(self, monkeypatch):
        # Arrange
        monkeypatch.setenv("TWIST_API_TOKEN", "env-token-456")

        # Act
        result = runner.invoke(app, ["auth", "status"])

        # Assert
        assert result.exit_code == 0
        assert "TWIST_API_TOKEN environment variable" in result.output
        assert "env-token-456" not in result.output

    def test_no_token(self):
        result = runner.invoke(app, ["auth", "status"])

        assert result.exit_code == 0
        assert "Not authenticated" in result.output
        assert "tw auth login" in result.output
