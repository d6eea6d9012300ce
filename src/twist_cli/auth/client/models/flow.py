"""Authorization flow models for OAuth 2.0.

Contains models for authorization requests and callback handling.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from urllib.parse import urlencode


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the PKCE flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    scope: str
    state: str
    code_challenge: str
    code_challenge_method: str = "S256"

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": self.state,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
        }

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    """Query parameters carried by a redirect to the callback path."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_error(self) -> bool:
        return bool(self.error)


@dataclass(frozen=True)
class CallbackResult:
    """Authorization code delivered by the callback server.

    ``cleanup`` stops the listener and cancels the timeout. It is
    idempotent and safe to call after the server already shut down.
    """

    code: str = field(repr=False)
    cleanup: Callable[[], Awaitable[None]]
