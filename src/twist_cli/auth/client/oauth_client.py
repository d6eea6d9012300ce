"""OAuth 2.0 login orchestration for the Twist CLI.

Coordinates dynamic registration, PKCE, the local callback server, the
browser hand-off and the token exchange to turn one interactive login
into a bearer token.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from collections.abc import Callable
from typing import Protocol

from twist_cli.auth.client.models.registration import ClientCredentials
from twist_cli.auth.client.models.security import PKCEParameters
from twist_cli.auth.client.models.settings import OAuthSettings
from twist_cli.auth.client.primitives.pkce import PKCEManager
from twist_cli.auth.client.services.callback_server import CallbackServer
from twist_cli.auth.client.services.flow import OAuth2FlowManager
from twist_cli.auth.client.services.registration import OAuth2Registration
from twist_cli.auth.client.services.tokens import OAuth2TokenManager

logger = logging.getLogger(__name__)


class AuthorizationHandler(Protocol):
    """Protocol for handing the authorization URL to the user.

    Allows different strategies for browser interaction:
    - Print the URL and open the default browser
    - Print the URL only (headless sessions)
    - Drive the redirect directly (tests)
    """

    async def handle_authorization(self, auth_url: str) -> None:
        """Present the authorization URL to the user.

        Args:
            auth_url: Authorization URL for the user to visit
        """
        ...


class BrowserAuthorizationHandler:
    """Prints the authorization URL and tries to open the default browser.

    The URL is always printed first so the login can be completed by hand
    when no browser is available.
    """

    def __init__(
        self,
        echo: Callable[[str], None] = print,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ):
        self.echo = echo
        self.open_browser = open_browser

    async def handle_authorization(self, auth_url: str) -> None:
        self.echo(f"Open this URL in your browser to authorize Twist CLI:\n{auth_url}")

        loop = asyncio.get_running_loop()
        try:
            opened = await loop.run_in_executor(None, self.open_browser, auth_url)
        except webbrowser.Error as e:
            logger.info(f"Could not open a browser: {e}")
            return

        if not opened:
            logger.info("No browser available; visit the URL above to continue")


CallbackServerFactory = Callable[[str, OAuthSettings], CallbackServer]


class OAuth2Client:
    """Runs the OAuth 2.0 authorization code flow with PKCE.

    Each call to :meth:`login` is an independent attempt: it registers a
    fresh client, generates fresh PKCE parameters and state, and owns its
    callback server until the attempt finishes. Nothing is retried and
    nothing is persisted; the caller stores the returned token.
    """

    def __init__(
        self,
        settings: OAuthSettings | None = None,
        authorization_handler: AuthorizationHandler | None = None,
        callback_server_factory: CallbackServerFactory = CallbackServer,
    ):
        """Initialize OAuth client.

        Args:
            settings: Endpoints, callback address and timeouts
            authorization_handler: Handler that presents the authorization URL
            callback_server_factory: Builds the callback server for an attempt
        """
        self.settings = settings or OAuthSettings()
        self.authorization_handler = (
            authorization_handler or BrowserAuthorizationHandler()
        )
        self.callback_server_factory = callback_server_factory

        self.pkce_manager = PKCEManager()
        self.flow_manager = OAuth2FlowManager(self.settings)
        self.registration = OAuth2Registration(self.settings)
        self.token_manager = OAuth2TokenManager(self.settings)

    async def login(self) -> str:
        """Run one interactive login and return the bearer token.

        Performs the complete flow:
        1. Register an ephemeral client
        2. Generate PKCE verifier, challenge and state
        3. Start the callback server
        4. Present the authorization URL without blocking the wait
        5. Wait for the callback
        6. Stop the callback server, whatever the outcome
        7. Exchange the code for a token

        Returns:
            The access token

        Raises:
            OAuth2Error: Any of its subclasses; every failure is terminal
        """
        logger.info("Starting OAuth login")

        client_credentials = await self.registration.register_client()
        pkce_params = self.pkce_manager.generate_parameters()

        callback_server = self.callback_server_factory(pkce_params.state, self.settings)
        authorization_task: asyncio.Task[None] | None = None
        try:
            await callback_server.start()
            authorization_task = asyncio.create_task(
                self._present_authorization_url(client_credentials, pkce_params)
            )
            callback = await callback_server.wait_for_code()
        finally:
            await callback_server.cleanup()
            if authorization_task is not None and not authorization_task.done():
                authorization_task.cancel()

        token = await self.token_manager.exchange_code_for_token(
            callback.code, pkce_params.code_verifier, client_credentials
        )
        logger.info("OAuth login completed")
        return token

    async def _present_authorization_url(
        self, client_credentials: ClientCredentials, pkce_params: PKCEParameters
    ) -> None:
        auth_url = self.flow_manager.build_authorization_url(
            client_credentials, pkce_params
        )
        try:
            await self.authorization_handler.handle_authorization(auth_url)
        except Exception as e:
            logger.info(f"Authorization handler failed: {e}")

    async def close(self) -> None:
        """Close all service connections."""
        await self.registration.close()
        await self.token_manager.close()

    async def __aenter__(self) -> OAuth2Client:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


async def login(
    settings: OAuthSettings | None = None,
    authorization_handler: AuthorizationHandler | None = None,
) -> str:
    """Obtain a bearer token through the interactive browser login."""
    async with OAuth2Client(settings, authorization_handler) as client:
        return await client.login()
