"""OAuth 2.0 authorization flow helpers.

Builds the authorization URL for a login attempt and validates the
redirect that reaches the callback server.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from twist_cli.auth.client.models.errors import (
    AuthorizationError,
    MissingCodeError,
    StateValidationError,
)
from twist_cli.auth.client.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
)
from twist_cli.auth.client.models.registration import ClientCredentials
from twist_cli.auth.client.models.security import PKCEParameters
from twist_cli.auth.client.models.settings import OAuthSettings

logger = logging.getLogger(__name__)


class OAuth2FlowManager:
    """Builds authorization requests and validates their callbacks.

    Validation order on a callback:
    1. An ``error`` parameter fails with the provider's description,
       whatever the state says.
    2. A missing or different ``state`` fails as a possible CSRF attempt.
    3. A missing or empty ``code`` fails as "no code received".
    """

    def __init__(self, settings: OAuthSettings | None = None):
        self.settings = settings or OAuthSettings()

    def build_authorization_url(
        self, client_credentials: ClientCredentials, pkce_params: PKCEParameters
    ) -> str:
        """Build the URL the user visits to approve this login attempt."""
        auth_request = AuthorizationRequest(
            authorization_endpoint=self.settings.authorization_endpoint,
            client_id=client_credentials.client_id,
            redirect_uri=self.settings.redirect_uri,
            scope=self.settings.scope,
            state=pkce_params.state,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
        )
        return auth_request.build_authorization_url()

    def parse_callback_params(
        self, query_params: Mapping[str, str]
    ) -> AuthorizationResponse:
        """Extract the OAuth parameters from callback query parameters."""
        return AuthorizationResponse(
            code=query_params.get("code"),
            state=query_params.get("state"),
            error=query_params.get("error"),
            error_description=query_params.get("error_description"),
        )

    def validate_callback(
        self, response: AuthorizationResponse, expected_state: str
    ) -> str:
        """Validate a callback and return its authorization code.

        Args:
            response: Parameters received on the callback path
            expected_state: State sent in the authorization request

        Returns:
            The authorization code

        Raises:
            AuthorizationError: If the provider reported an error
            StateValidationError: If the state is missing or does not match
            MissingCodeError: If no authorization code was received
        """
        if response.is_error():
            logger.warning(
                f"Authorization callback contained error: {response.error} - "
                f"{response.error_description}"
            )
            raise AuthorizationError(response.error, response.error_description)

        if not response.state or response.state != expected_state:
            raise StateValidationError(
                "Invalid state parameter received. Possible CSRF attack."
            )

        if not response.code:
            raise MissingCodeError("No authorization code received from OAuth server")

        logger.info("Authorization callback successful - received authorization code")
        return response.code
