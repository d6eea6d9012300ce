"""Command line entry point for Twist CLI authentication.

Provides the ``tw auth`` command group::

    tw auth login           # browser login with OAuth 2.0 + PKCE
    tw auth token <token>   # save an API token manually
    tw auth status          # show whether a token is configured
    tw auth logout          # remove the saved token
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.markup import escape

from twist_cli.auth.client.models.errors import OAuth2Error
from twist_cli.auth.client.oauth_client import BrowserAuthorizationHandler, login
from twist_cli.auth.credentials import (
    ConfigFileError,
    CredentialsNotFoundError,
    CredentialStore,
    InvalidTokenError,
)

console = Console(stderr=True)

app = typer.Typer(name="tw", help="Twist command line interface.", no_args_is_help=True)
auth_app = typer.Typer(no_args_is_help=True)
app.add_typer(auth_app, name="auth", help="Manage authentication.")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug logging on stderr."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _echo(message: str) -> None:
    # Long authorization URLs must stay on one line to be copyable.
    console.print(message, markup=False, soft_wrap=True)


def _fail(message: str, remedy: str | None = None) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}", soft_wrap=True)
    if remedy:
        console.print(f"[dim]→ {escape(remedy)}[/dim]", soft_wrap=True)
    return typer.Exit(code=1)


@auth_app.command("login")
def auth_login() -> None:
    """Log in through the browser and save the API token."""
    handler = BrowserAuthorizationHandler(echo=_echo)
    try:
        token = asyncio.run(login(authorization_handler=handler))
    except OAuth2Error as exc:
        raise _fail(str(exc), exc.remedy) from None

    store = CredentialStore()
    try:
        store.save_api_token(token)
    except ConfigFileError as exc:
        raise _fail(str(exc), exc.remedy) from None
    except InvalidTokenError as exc:
        raise _fail(
            f"The server returned an unusable token. {exc}",
            "Run `tw auth login` again, or save a token manually with "
            "`tw auth token <token>`.",
        ) from None

    console.print("[green]✓[/green] Logged in successfully!")
    console.print(f"[dim]Token saved to {store.path}[/dim]")


@auth_app.command("token")
def auth_token(
    token: str = typer.Argument(help="API token to save."),
) -> None:
    """Save an API token to the config file."""
    store = CredentialStore()
    try:
        store.save_api_token(token)
    except ConfigFileError as exc:
        raise _fail(str(exc), exc.remedy) from None
    except InvalidTokenError as exc:
        raise _fail(str(exc)) from None

    console.print("[green]✓[/green] API token saved successfully!")
    console.print(f"[dim]Token saved to {store.path}[/dim]")


@auth_app.command("status")
def auth_status() -> None:
    """Show whether an API token is configured and where it comes from."""
    store = CredentialStore()
    try:
        store.get_api_token()
    except ConfigFileError as exc:
        raise _fail(str(exc), exc.remedy) from None
    except CredentialsNotFoundError:
        console.print("[yellow]Not authenticated[/yellow]")
        console.print(
            "[dim]Run `tw auth login` or `tw auth token <token>` to authenticate[/dim]"
        )
        return

    console.print("[green]✓[/green] Authenticated")
    console.print(f"  Source: {escape(store.token_source())}", soft_wrap=True)


@auth_app.command("logout")
def auth_logout() -> None:
    """Remove the saved API token."""
    store = CredentialStore()
    try:
        store.clear_api_token()
    except ConfigFileError as exc:
        raise _fail(str(exc), exc.remedy) from None
    console.print("[green]✓[/green] Logged out")
    console.print(f"[dim]Token removed from {store.path}[/dim]")


def main() -> None:
    app()
