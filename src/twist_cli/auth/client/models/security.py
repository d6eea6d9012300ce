"""Security-related models for OAuth 2.0 authentication.

Contains PKCE parameters and the CSRF state generated for each login
attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters for one login attempt.

    Immutable parameters generated for each authorization flow to prevent
    authorization code interception attacks (RFC 7636). The verifier never
    leaves the process except in the final token exchange.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    state: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not self.state:
            raise ValueError("state must not be empty")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
