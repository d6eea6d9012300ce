"""OAuth 2.0 dynamic client registration service.

Implements RFC 7591 (OAuth 2.0 Dynamic Client Registration Protocol) to
register an ephemeral native client for each login attempt.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from twist_cli.auth.client.models.errors import RegistrationError
from twist_cli.auth.client.models.registration import (
    ClientCredentials,
    ClientMetadata,
)
from twist_cli.auth.client.models.settings import OAuthSettings

logger = logging.getLogger(__name__)


class OAuth2Registration:
    """Handles OAuth 2.0 dynamic client registration for the CLI.

    Every login attempt registers a fresh client; the returned credentials
    are never cached or persisted. A single request is made and failures
    are not retried.
    """

    def __init__(self, settings: OAuthSettings | None = None):
        """Initialize OAuth registration.

        Args:
            settings: Endpoints, redirect URI and HTTP timeout to use
        """
        self.settings = settings or OAuthSettings()
        self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)

    def build_client_metadata(self) -> ClientMetadata:
        """Build the fixed metadata describing this CLI."""
        return ClientMetadata(
            client_name=self.settings.client_name,
            client_uri=self.settings.client_uri,
            logo_uri=self.settings.logo_uri,
            redirect_uris=[self.settings.redirect_uri],
        )

    async def register_client(
        self, client_metadata: ClientMetadata | None = None
    ) -> ClientCredentials:
        """Register a new OAuth client with the authorization server.

        Args:
            client_metadata: Client metadata to register, defaults to the
                CLI's own metadata

        Returns:
            Client id and secret scoped to this login attempt

        Raises:
            RegistrationError: If the request fails, the status is not 2xx,
                or the response lacks client_id or client_secret
        """
        endpoint = self.settings.registration_endpoint
        metadata = client_metadata or self.build_client_metadata()
        logger.debug(f"Registering client at {endpoint}")

        try:
            response = await self._http_client.post(
                endpoint,
                json=metadata.model_dump(exclude_none=True, mode="json"),
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise RegistrationError(f"HTTP error during registration: {e}") from e

        if not response.is_success:
            logger.error(
                f"Client registration failed with {response.status_code}: "
                f"{response.text}"
            )
            raise RegistrationError(
                f"Client registration failed ({response.status_code}): "
                f"{response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        return self._parse_credentials(response)

    def _parse_credentials(self, response: httpx.Response) -> ClientCredentials:
        """Parse client credentials from a successful registration response.

        Raises:
            RegistrationError: If the body is not JSON or misses a credential
        """
        try:
            response_data = response.json()
        except ValueError as e:
            raise RegistrationError(
                f"Invalid registration response format: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if (
            not isinstance(response_data, dict)
            or not response_data.get("client_id")
            or not response_data.get("client_secret")
        ):
            raise RegistrationError(
                "Invalid client registration response: "
                "missing client_id or client_secret",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            credentials = ClientCredentials(**response_data)
        except ValidationError as e:
            raise RegistrationError(
                f"Invalid registration response format: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        logger.info(f"Registered OAuth client {credentials.client_id}")
        return credentials

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
