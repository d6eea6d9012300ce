import json
import os
import stat

import pytest

from twist_cli.auth.credentials import (
    CliConfig,
    ConfigFileError,
    CredentialsNotFoundError,
    CredentialStore,
    InvalidTokenError,
    get_config_path,
)


@pytest.fixture
def store(tmp_path, monkeypatch):
    monkeypatch.delenv("TWIST_API_TOKEN", raising=False)
    return CredentialStore(tmp_path / "twist-cli" / "config.json")


class TestCredentialStore:
    def test_config_path_follows_xdg(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert get_config_path() == tmp_path / "twist-cli" / "config.json"

    def test_save_and_get_token(self, store):
        # Act
        store.save_api_token("  my-secret-token  ")

        # Assert
        assert store.get_api_token() == "my-secret-token"
        assert json.loads(store.path.read_text()) == {"token": "my-secret-token"}

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_config_file_is_private(self, store):
        store.save_api_token("my-secret-token")

        mode = stat.S_IMODE(store.path.stat().st_mode)
        assert mode == 0o600

    def test_environment_token_wins(self, store, monkeypatch):
        # Arrange
        store.save_api_token("file-token-123")
        monkeypatch.setenv("TWIST_API_TOKEN", "env-token-456")

        # Act & Assert
        assert store.get_api_token() == "env-token-456"

    def test_missing_token_raises(self, store):
        with pytest.raises(CredentialsNotFoundError, match="TWIST_API_TOKEN"):
            store.get_api_token()

    @pytest.mark.parametrize("token", ["", "   ", "short", "  123456789 "])
    def test_rejects_short_tokens(self, store, token):
        with pytest.raises(InvalidTokenError):
            store.save_api_token(token)

        assert not store.path.exists()

    def test_save_keeps_other_settings(self, store):
        # Arrange
        store.save(CliConfig(workspace=42))

        # Act
        store.save_api_token("my-secret-token")

        # Assert
        assert json.loads(store.path.read_text()) == {
            "workspace": 42,
            "token": "my-secret-token",
        }

    def test_clear_deletes_file_when_empty(self, store):
        # Arrange
        store.save_api_token("my-secret-token")

        # Act
        store.clear_api_token()

        # Assert
        assert not store.path.exists()

    def test_clear_keeps_other_settings(self, store):
        # Arrange
        store.save(CliConfig(workspace=42, token="my-secret-token"))

        # Act
        store.clear_api_token()

        # Assert
        assert json.loads(store.path.read_text()) == {"workspace": 42}

    def test_clear_without_file_is_noop(self, store):
        store.clear_api_token()

        assert not store.path.exists()

    def test_load_without_file_is_empty(self, store):
        assert store.load() == CliConfig()

    @pytest.mark.parametrize(
        "content, reason",
        [
            ("{not json", "not valid JSON"),
            ('["token"]', "expected a JSON object"),
            ('{"token": 12345}', "string token"),
        ],
    )
    def test_unusable_config_file_raises(self, store, content, reason):
        # Arrange
        store.path.parent.mkdir(parents=True)
        store.path.write_text(content)

        # Act & Assert
        with pytest.raises(ConfigFileError, match=reason) as exc_info:
            store.load()

        assert exc_info.value.path == store.path
        assert str(store.path) in exc_info.value.remedy

    def test_broken_config_file_is_not_overwritten(self, store):
        # Arrange
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")

        # Act & Assert
        with pytest.raises(ConfigFileError):
            store.save_api_token("my-secret-token")

        assert store.path.read_text() == "{not json"

    def test_token_source(self, store, monkeypatch):
        assert store.token_source() == str(store.path)

        monkeypatch.setenv("TWIST_API_TOKEN", "env-token-456")

        assert store.token_source() == "TWIST_API_TOKEN environment variable"
