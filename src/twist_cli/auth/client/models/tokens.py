"""Token request and response models for OAuth 2.0.

Contains the authorization code exchange request and the token endpoint
response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class TokenRequest:
    """OAuth 2.0 token exchange request parameters (RFC 6749 Section 4.1.3).

    Immutable request parameters for exchanging an authorization code for
    an access token. Includes the PKCE code_verifier (RFC 7636). Client
    credentials are not part of the body; they travel in the Basic
    authorization header.
    """

    token_endpoint: str
    code: str = field(repr=False)
    redirect_uri: str
    code_verifier: str = field(repr=False)

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).

        Returns:
            Dictionary suitable for httpx data parameter
        """
        return {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": self.code_verifier,
        }


class TokenResponse(BaseModel):
    """OAuth 2.0 token response (RFC 6749 Section 5).

    Represents the body of a 2xx token endpoint response. Only the fields
    the login reads are declared, and they are left untyped: providers vary
    in how they shape ``scope``, ``expires_in`` or ``token_type``, and none
    of those may reject an otherwise usable token. Some providers report
    OAuth errors in a 2xx body, so the error fields are kept too.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: Any = None

    error: Any = None
    error_description: Any = None

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return bool(self.error)

    def has_access_token(self) -> bool:
        """Check if the body carries a non-empty bearer token string."""
        return isinstance(self.access_token, str) and bool(self.access_token)
