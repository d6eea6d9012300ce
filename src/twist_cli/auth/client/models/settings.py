"""Configuration for the Twist OAuth login flow.

The defaults are the production endpoints and the fixed redirect URI that
every dynamically registered client advertises.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCOPES = (
    "user:read",
    "workspaces:read",
    "channels:read",
    "threads:read",
    "threads:write",
    "comments:read",
    "comments:write",
    "messages:read",
    "messages:write",
    "reactions:read",
    "reactions:write",
    "search:read",
    "notifications:read",
)


class OAuthSettings(BaseModel):
    """Endpoints, callback address and timeouts for one login attempt."""

    model_config = ConfigDict(frozen=True)

    authorization_endpoint: str = "https://twist.com/oauth/authorize"
    token_endpoint: str = "https://twist.com/oauth/access_token"
    registration_endpoint: str = "https://twist.com/oauth/register"

    callback_host: str = "localhost"
    callback_port: int = Field(default=8766, ge=0, le=65535)
    callback_path: str = "/callback"
    callback_timeout: float = Field(default=180.0, gt=0)  # seconds

    http_timeout: float = 30.0

    client_name: str = "Twist CLI"
    client_uri: str = "https://github.com/doist/twist-cli"
    logo_uri: str | None = (
        "https://todoist.b-cdn.net/agentist-icons/service_twist_color_72px.svg"
    )
    scopes: tuple[str, ...] = DEFAULT_SCOPES

    @property
    def redirect_uri(self) -> str:
        """Redirect URI registered with the server and served locally."""
        return f"http://{self.callback_host}:{self.callback_port}{self.callback_path}"

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)
