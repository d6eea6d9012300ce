"""Local HTTP server that receives the OAuth redirect.

The server listens on the fixed redirect address for a single login
attempt. The first callback that passes or fails validation settles a
one-shot future; a timer rejects the future if no callback arrives in
time. Requests to any other path get a 404 page and leave the attempt
waiting.
"""

from __future__ import annotations

import asyncio
import errno
import html
import logging
import socket
from enum import Enum

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from twist_cli.auth.client.models.errors import (
    AuthorizationError,
    AuthorizationTimeoutError,
    CallbackServerError,
    MissingCodeError,
    OAuth2Error,
    PortInUseError,
    StateValidationError,
)
from twist_cli.auth.client.models.flow import CallbackResult
from twist_cli.auth.client.models.settings import OAuthSettings
from twist_cli.auth.client.services.flow import OAuth2FlowManager

logger = logging.getLogger(__name__)


class ServerState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"


class CallbackServer:
    """Short-lived listener for one OAuth authorization callback.

    Owns the listening socket, the timeout timer and the one-shot result
    future until the attempt settles. ``cleanup`` releases all three and
    may be called any number of times from any code path.
    """

    def __init__(
        self,
        expected_state: str,
        settings: OAuthSettings | None = None,
        flow_manager: OAuth2FlowManager | None = None,
    ) -> None:
        self.settings = settings or OAuthSettings()
        self.port = self.settings.callback_port
        self.addresses: list[str] = []
        self._expected_state = expected_state
        self._flow_manager = flow_manager or OAuth2FlowManager(self.settings)

        self.state = ServerState.IDLE
        self._closed = False
        self._result: asyncio.Future[str] | None = None
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None

        self.app = Starlette(
            routes=[
                Route(self.settings.callback_path, self._handle_callback),
                Route("/{path:path}", self._handle_not_found),
            ]
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Bind the callback port and start serving in the background.

        Raises:
            PortInUseError: If another process already listens on the port
            CallbackServerError: If the listener cannot be started otherwise
        """
        if self.state is not ServerState.IDLE or self._closed:
            raise CallbackServerError("Callback server can only be started once")

        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        sockets = self._bind_sockets()

        config = uvicorn.Config(
            app=self.app,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=5,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=sockets))
        self._serve_task.add_done_callback(self._on_serve_done)
        self._timeout_handle = loop.call_later(
            self.settings.callback_timeout, self._on_timeout
        )
        self.state = ServerState.LISTENING

        logger.info(f"OAuth callback server listening on {self.settings.redirect_uri}")

    async def wait_for_code(self) -> CallbackResult:
        """Wait until the attempt settles and return the authorization code.

        Raises:
            AuthorizationError: If the provider reported an error
            StateValidationError: If the callback state did not match
            MissingCodeError: If the callback carried no code
            AuthorizationTimeoutError: If no callback arrived in time
            CallbackServerError: If the listener stopped unexpectedly
        """
        if self._result is None:
            raise CallbackServerError("Callback server has not been started")

        code = await self._result
        return CallbackResult(code=code, cleanup=self.cleanup)

    async def cleanup(self) -> None:
        """Stop the listener and cancel the timeout, exactly once."""
        if self._closed:
            return
        self._closed = True

        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

        if self._result is not None and not self._result.done():
            self._result.cancel()

        if self._server is not None:
            self._server.should_exit = True

        if self._serve_task is not None:
            try:
                await self._serve_task
            except Exception as e:
                logger.debug(f"Callback server exited with error: {e}")
            self._serve_task = None

        logger.debug("OAuth callback server stopped")

    def _bind_sockets(self) -> list[socket.socket]:
        """Bind the IPv4 listener, plus ``[::1]`` on the same port for localhost.

        Browsers may resolve ``localhost`` to either loopback address, so
        both are served when the host has IPv6. A missing IPv6 loopback is
        not an error. The port being taken on either family is.
        """
        host = self.settings.callback_host
        try:
            sock = socket.create_server((host, self.settings.callback_port))
        except OSError as e:
            self._closed = True
            if e.errno == errno.EADDRINUSE:
                raise PortInUseError(self.settings.callback_port) from e
            raise CallbackServerError(f"Server error: {e}") from e

        self.port = sock.getsockname()[1]
        sockets = [sock]
        if host == "localhost" and socket.has_ipv6:
            try:
                sockets.append(
                    socket.create_server(("::1", self.port), family=socket.AF_INET6)
                )
            except OSError as e:
                if e.errno == errno.EADDRINUSE:
                    sock.close()
                    self._closed = True
                    raise PortInUseError(self.port) from e
                logger.debug(f"IPv6 loopback unavailable, listening on IPv4 only: {e}")

        self.addresses = [s.getsockname()[0] for s in sockets]
        return sockets

    async def _handle_callback(self, request: Request) -> Response:
        if self._result is None or self._result.done():
            return HTMLResponse(
                error_page("This login attempt is no longer active."),
                status_code=400,
            )

        auth_response = self._flow_manager.parse_callback_params(request.query_params)
        try:
            code = self._flow_manager.validate_callback(
                auth_response, self._expected_state
            )
        except AuthorizationError as e:
            self._reject(e)
            message = e.error_description or e.error
            return HTMLResponse(error_page(f"OAuth Error: {message}"), status_code=400)
        except StateValidationError as e:
            logger.warning(f"Rejected OAuth callback: {e}")
            self._reject(e)
            return HTMLResponse(
                error_page("Invalid state parameter. This may be a security issue."),
                status_code=400,
            )
        except MissingCodeError as e:
            logger.warning(f"Rejected OAuth callback: {e}")
            self._reject(e)
            return HTMLResponse(
                error_page("No authorization code received."), status_code=400
            )

        self._cancel_timeout()
        self.state = ServerState.RESOLVED
        self._result.set_result(code)
        return HTMLResponse(success_page())

    async def _handle_not_found(self, request: Request) -> Response:
        return HTMLResponse(not_found_page(), status_code=404)

    def _reject(self, error: OAuth2Error) -> None:
        self._cancel_timeout()
        self.state = ServerState.REJECTED
        self._result.set_exception(error)

    def _cancel_timeout(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if self._result is None or self._result.done():
            return

        logger.warning(
            f"No OAuth callback received within {self.settings.callback_timeout}s"
        )
        self.state = ServerState.TIMED_OUT
        self._result.set_exception(
            AuthorizationTimeoutError(self.settings.callback_timeout)
        )
        if self._server is not None:
            self._server.should_exit = True

    def _on_serve_done(self, task: asyncio.Task[None]) -> None:
        if self._result is None or self._result.done():
            return

        error = None if task.cancelled() else task.exception()
        self._cancel_timeout()
        self.state = ServerState.REJECTED
        self._result.set_exception(
            CallbackServerError(
                f"Callback server stopped before receiving the callback: {error}"
                if error
                else "Callback server stopped before receiving the callback"
            )
        )


PAGE_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <title>{title} - Twist CLI</title>
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; text-align: center; padding: 50px; background: #f5f5f5; }}
        .container {{ max-width: 500px; margin: 0 auto; background: white; padding: 40px; border-radius: 8px; box-shadow: 0 2px 8px rgba(0,0,0,0.1); }}
        .heading {{ font-size: 24px; margin-bottom: 20px; color: {color}; }}
        .message {{ color: #333; font-size: 16px; line-height: 1.5; margin-bottom: 20px; }}
        .instructions {{ color: #666; font-size: 14px; }}
    </style>
</head>
<body>
    <div class="container">
        {body}
    </div>
</body>
</html>"""


def success_page() -> str:
    return PAGE_TEMPLATE.format(
        title="Authorization Successful",
        color="#28a745",
        body=(
            '<div class="heading">&#9989; Authorization Successful!</div>\n'
            '        <div class="message">You have successfully authorized Twist CLI. '
            "You can now close this window and return to your terminal.</div>"
        ),
    )


def error_page(message: str) -> str:
    return PAGE_TEMPLATE.format(
        title="Authorization Error",
        color="#dc3545",
        body=(
            '<div class="heading">&#10060; Authorization Failed</div>\n'
            f'        <div class="message">{html.escape(message)}</div>\n'
            '        <div class="instructions">Please close this window and try '
            "running the login command again in your terminal.</div>"
        ),
    )


def not_found_page() -> str:
    return PAGE_TEMPLATE.format(
        title="Page Not Found",
        color="#333",
        body=(
            '<div class="message">This is the OAuth callback server for Twist CLI. '
            "This page should only be accessed during the login process.</div>"
        ),
    )
