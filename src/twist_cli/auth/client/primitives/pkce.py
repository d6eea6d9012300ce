"""PKCE (Proof Key for Code Exchange) generator for the login flow.

Implements RFC 7636 PKCE parameter generation to prevent authorization
code interception attacks, plus the CSRF state sent with every
authorization request.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from twist_cli.auth.client.models.security import PKCEParameters

# 32 bytes encode to 43 base64url characters, the RFC 7636 minimum.
VERIFIER_BYTES = 32
STATE_BYTES = 16


def base64url_encode(data: bytes) -> str:
    """Base64url encode without padding (RFC 4648 Section 5)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates PKCE parameters and CSRF state for OAuth login attempts.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Generates code verifiers from the OS CSPRNG via ``secrets``
    - Generates a fresh state parameter for CSRF protection

    Randomness failures are not caught here; they abort the login attempt.
    """

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow
        """
        code_verifier = self.generate_code_verifier()

        return PKCEParameters(
            code_verifier=code_verifier,
            code_challenge=self.derive_code_challenge(code_verifier),
            state=self.generate_state(),
            code_challenge_method="S256",
        )

    def generate_code_verifier(self) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: code verifier must be 43-128 characters long
        and use only unreserved characters. 256 bits of randomness encoded
        as base64url gives exactly 43 characters from [A-Za-z0-9-_].

        Returns:
            A 43-character code verifier
        """
        return base64url_encode(secrets.token_bytes(VERIFIER_BYTES))

    def derive_code_challenge(self, code_verifier: str) -> str:
        """Derive the code challenge from a code verifier using S256.

        RFC 7636 Section 4.2: For S256, the code challenge is:
        BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))

        Args:
            code_verifier: The code verifier to hash

        Returns:
            Base64url-encoded SHA256 hash of the code verifier
        """
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64url_encode(digest)

    def generate_state(self) -> str:
        """Generate a 128-bit state parameter for CSRF protection."""
        return base64url_encode(secrets.token_bytes(STATE_BYTES))
