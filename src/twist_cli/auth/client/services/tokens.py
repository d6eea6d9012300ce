"""OAuth 2.0 token exchange service.

Implements the RFC 6749 authorization code grant against the token
endpoint with PKCE (RFC 7636) and HTTP Basic client authentication.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from twist_cli.auth.client.models.errors import TokenExchangeError
from twist_cli.auth.client.models.registration import ClientCredentials
from twist_cli.auth.client.models.settings import OAuthSettings
from twist_cli.auth.client.models.tokens import TokenRequest, TokenResponse

logger = logging.getLogger(__name__)


class OAuth2TokenManager:
    """Exchanges authorization codes for bearer tokens.

    Uses application/x-www-form-urlencoded encoding as required by RFC 6749
    and authenticates the ephemeral client with ``client_secret_basic``.
    A single request is made and failures are not retried.
    """

    def __init__(self, settings: OAuthSettings | None = None):
        """Initialize OAuth token manager.

        Args:
            settings: Token endpoint, redirect URI and HTTP timeout to use
        """
        self.settings = settings or OAuthSettings()
        self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)

    async def exchange_code_for_token(
        self, code: str, code_verifier: str, client: ClientCredentials
    ) -> str:
        """Exchange an authorization code for an access token.

        Implements RFC 6749 Section 4.1.3 - Access Token Request.

        Args:
            code: Authorization code received on the callback
            code_verifier: PKCE verifier generated for this attempt
            client: Ephemeral client credentials for Basic authentication

        Returns:
            The access token string

        Raises:
            TokenExchangeError: On network failure, non-2xx status, an OAuth
                error in the body, or a body without access_token
        """
        token_request = TokenRequest(
            token_endpoint=self.settings.token_endpoint,
            code=code,
            redirect_uri=self.settings.redirect_uri,
            code_verifier=code_verifier,
        )
        logger.debug(
            f"Exchanging authorization code at {token_request.token_endpoint} "
            f"for client {client.client_id}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=token_request.to_form_data(),
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Accept": "application/json",
                },
                auth=httpx.BasicAuth(client.client_id, client.client_secret),
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"HTTP error during token exchange: {e}") from e

        token_response = self._parse_token_response(response)
        logger.info("Token exchange successful")
        return token_response.access_token

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse a token endpoint response, raising on any failure.

        Raises:
            TokenExchangeError: If the response does not carry an access token
        """
        if not response.is_success:
            logger.warning(
                f"Token exchange failed with {response.status_code}: {response.text}"
            )
            raise TokenExchangeError(
                f"Token exchange failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            # Non-object JSON (list, string, null) fails validation too
            token_response = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenExchangeError(
                f"Invalid token response format: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        # Some providers report OAuth errors with a 2xx status
        if token_response.is_error():
            error = str(token_response.error)
            error_description = (
                str(token_response.error_description)
                if token_response.error_description
                else None
            )
            raise TokenExchangeError(
                f"OAuth error: {error} - {error_description or 'Unknown error'}",
                status_code=response.status_code,
                body=response.text,
                error=error,
                error_description=error_description,
            )

        if not token_response.has_access_token():
            raise TokenExchangeError(
                "No access token received from OAuth server",
                status_code=response.status_code,
                body=response.text,
            )

        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
