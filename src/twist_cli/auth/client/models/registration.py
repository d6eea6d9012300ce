"""Client registration models for OAuth 2.0 Dynamic Client Registration.

Contains models for client metadata (RFC 7591) and the ephemeral
credentials returned for a single login attempt.
"""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClientMetadata(BaseModel):
    """OAuth 2.0 Client Metadata for dynamic registration (RFC 7591).

    Describes the CLI as a native application that authenticates to the
    token endpoint with HTTP Basic credentials.
    """

    client_name: str
    redirect_uris: list[str] = Field(min_length=1, max_length=1)

    client_uri: str | None = None
    logo_uri: str | None = None

    grant_types: list[str] = Field(default=["authorization_code"])
    response_types: list[str] = Field(default=["code"])
    token_endpoint_auth_method: str = "client_secret_basic"
    application_type: str = "native"

    @field_validator("redirect_uris")
    @classmethod
    def validate_redirect_uris(cls, v: list[str]) -> list[str]:
        """Validate redirect URIs point at the local loopback listener."""
        for uri in v:
            parsed = urlparse(uri)
            if parsed.scheme != "http" or parsed.hostname not in (
                "localhost",
                "127.0.0.1",
            ):
                raise ValueError(f"Redirect URI must be a local http URI: {uri}")
        return v

    @field_validator("client_uri", "logo_uri")
    @classmethod
    def validate_https_uris(cls, v: str | None) -> str | None:
        """Validate optional URIs use HTTPS when provided."""
        if v is not None and not v.startswith("https://"):
            raise ValueError(f"URI must use HTTPS: {v}")
        return v


class ClientCredentials(BaseModel):
    """Ephemeral client credentials from a registration response.

    Held in memory for one login attempt and never persisted.
    """

    # Some servers issue numeric client ids
    model_config = ConfigDict(
        frozen=True, extra="ignore", coerce_numbers_to_str=True
    )

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1, repr=False)
