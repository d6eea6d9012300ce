"""Exception hierarchy for the OAuth 2.0 login flow.

Provides specific exception types for each way a login attempt can fail.
Every error is terminal: the caller restarts the whole flow to retry.
Each type carries a short ``remedy`` that the CLI prints under the message.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 login errors."""

    remedy = "Run `tw auth login` again."


class RegistrationError(OAuth2Error):
    """Raised when dynamic client registration fails."""

    remedy = (
        "Check your network connection and run `tw auth login` again, "
        "or save a token manually with `tw auth token <token>`."
    )

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CallbackServerError(OAuth2Error):
    """Raised when the local callback server cannot be started."""


class PortInUseError(CallbackServerError):
    """Raised when the callback port is already bound by another process."""

    def __init__(self, port: int):
        super().__init__(
            f"Port {port} is already in use. Please close any other "
            "applications using this port and try again."
        )
        self.port = port
        self.remedy = (
            f"Close the process listening on port {port} "
            "(or another running `tw auth login`) and try again."
        )


class AuthorizationError(OAuth2Error):
    """Raised when the authorization server reports an error on the callback."""

    remedy = "Approve the request in the browser when you run `tw auth login` again."

    def __init__(self, error: str, error_description: str | None = None):
        self.error = error
        self.error_description = error_description
        super().__init__(f"OAuth authorization failed: {error_description or error}")


class AuthorizationCallbackError(OAuth2Error):
    """Raised when the callback request is malformed or invalid.

    This indicates the redirect that reached the callback server could not
    be trusted or used, not that our callback handling code failed.
    """


class StateValidationError(AuthorizationCallbackError):
    """Raised when OAuth state parameter validation fails.

    Covers a missing, empty or different state parameter, any of which
    could indicate a CSRF attack.
    """

    remedy = (
        "Only complete the login from the URL printed by `tw auth login`. "
        "Run the command again to start a fresh attempt."
    )


class MissingCodeError(AuthorizationCallbackError):
    """Raised when a valid callback carries no authorization code."""


class AuthorizationTimeoutError(OAuth2Error):
    """Raised when no callback arrives before the deadline."""

    remedy = (
        "Run `tw auth login` again and finish the login in the browser "
        "within a few minutes."
    )

    def __init__(self, timeout: float):
        super().__init__("OAuth flow timed out. Please try again.")
        self.timeout = timeout


class TokenError(OAuth2Error):
    """Raised when token operations fail."""


class TokenExchangeError(TokenError):
    """Raised when authorization code to token exchange fails."""

    remedy = (
        "Run `tw auth login` again, or save a token manually with "
        "`tw auth token <token>`."
    )

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.error = error
        self.error_description = error_description
