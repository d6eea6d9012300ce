"""Storage for the Twist API token used by the CLI.

The token lives in ``$XDG_CONFIG_HOME/twist-cli/config.json`` (default
``~/.config/twist-cli/config.json``) next to any other CLI settings. The
``TWIST_API_TOKEN`` environment variable takes precedence when set.
Writes are atomic and the file is created with ``0o600`` permissions.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "TWIST_API_TOKEN"
MIN_TOKEN_LENGTH = 10


class CredentialsNotFoundError(Exception):
    """Raised when no API token is configured."""


class InvalidTokenError(ValueError):
    """Raised when a token is rejected before saving."""


class ConfigFileError(Exception):
    """Raised when the config file exists but cannot be used."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Config file {path} is invalid: {reason}")
        self.path = path
        self.remedy = f"Fix or delete {path}, then run `tw auth token <token>`."


class CliConfig(BaseModel):
    """Contents of the CLI config file.

    Only ``token`` is read by the CLI. Other keys are preserved so that
    settings written by other tools survive a token update.
    """

    model_config = ConfigDict(extra="allow")

    token: str | None = None


def get_config_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / "twist-cli" / "config.json"


class CredentialStore:
    """Read/write the CLI config file holding the API token."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or get_config_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CliConfig:
        """Return the stored config, empty if the file does not exist.

        Raises:
            ConfigFileError: If the file is not a JSON object or ``token``
                is not a string
        """
        if not self._path.is_file():
            return CliConfig()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return CliConfig.model_validate(data)
        except json.JSONDecodeError as e:
            raise ConfigFileError(self._path, f"not valid JSON ({e})") from e
        except UnicodeDecodeError as e:
            raise ConfigFileError(self._path, "not UTF-8 text") from e
        except ValidationError as e:
            raise ConfigFileError(
                self._path, "expected a JSON object with a string token"
            ) from e

    def save(self, config: CliConfig) -> None:
        """Persist the config atomically with ``0o600`` permissions."""
        data = config.model_dump(mode="json")
        if data.get("token") is None:
            data.pop("token", None)
        text = json.dumps(data, indent=2)

        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            os.chmod(tmp_path, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text + "\n")
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get_api_token(self) -> str:
        """Return the API token from the environment or the config file.

        Raises:
            CredentialsNotFoundError: If no token is configured
            ConfigFileError: If the config file is unreadable
        """
        env_token = os.environ.get(TOKEN_ENV_VAR)
        if env_token:
            return env_token

        token = self.load().token
        if token:
            return token

        raise CredentialsNotFoundError(
            f"No API token found. Set {TOKEN_ENV_VAR} environment variable "
            f'or add "token" to {self._path}'
        )

    def token_source(self) -> str:
        """Describe where :meth:`get_api_token` reads the token from."""
        if os.environ.get(TOKEN_ENV_VAR):
            return f"{TOKEN_ENV_VAR} environment variable"
        return str(self._path)

    def save_api_token(self, token: str) -> None:
        """Store a token, keeping any other settings in the file.

        Raises:
            InvalidTokenError: If the token is shorter than 10 characters
            ConfigFileError: If the existing config file is unreadable
        """
        token = token.strip()
        if len(token) < MIN_TOKEN_LENGTH:
            raise InvalidTokenError(
                f"Invalid token: Token must be at least {MIN_TOKEN_LENGTH} characters"
            )

        config = self.load()
        config.token = token
        self.save(config)
        logger.debug(f"Saved API token to {self._path}")

    def clear_api_token(self) -> None:
        """Remove the token, deleting the file when nothing else remains."""
        config = self.load()
        config.token = None

        if config.model_extra:
            self.save(config)
        elif self._path.is_file():
            self._path.unlink()
