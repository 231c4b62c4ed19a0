"""Authentication handlers for CLI"""

import logging

import httpx
from rich.console import Console

from codex_oauth import (
    AuthErrorKind,
    CodexOAuthService,
    NotAuthenticatedError,
    RefreshFailedError,
    open_browser,
)
from cli.status_display import format_time_remaining

logger = logging.getLogger(__name__)

# Errors from print_token go to stderr so stdout only ever carries the token
err_console = Console(stderr=True)


def login(service: CodexOAuthService, loop, console, launch_browser: bool = True) -> bool:
    """
    Handle the ChatGPT login flow

    Args:
        service: CodexOAuthService instance
        loop: Event loop for async operations
        console: Rich console for output
        launch_browser: Open the authorization URL in the default browser

    Returns:
        True if login succeeded
    """
    console.print("\n[bold cyan]ChatGPT Plus/Pro (Codex Subscription)[/bold cyan]\n")

    def on_url_ready(url: str) -> None:
        if launch_browser and open_browser(url):
            console.print("[green]✓ Browser opened[/green] Complete login to finish.")
            console.print("[dim]If nothing opened, visit this URL:[/dim]")
        else:
            console.print("Please open this URL in your browser:")
        console.print(f"[cyan]{url}[/cyan]\n")
        console.print("Waiting for authentication...")

    credential = loop.run_until_complete(service.start_oauth_flow(on_url_ready))

    if credential is None:
        state = service.get_auth_state()
        if state.error_kind in (AuthErrorKind.PORT_IN_USE, AuthErrorKind.TIMEOUT):
            console.print(f"[yellow]{state.error}[/yellow]")
        else:
            console.print(f"[red]Authentication failed:[/red] {state.error or 'unknown error'}")
        return False

    console.print("\n[bold green]Authentication successful![/bold green]")
    console.print(f"[dim]Account ID: {credential.account_id}[/dim]")
    return True


def refresh_token(service: CodexOAuthService, loop, console) -> bool:
    """
    Force a token refresh

    Args:
        service: CodexOAuthService instance
        loop: Event loop for async operations
        console: Rich console for output

    Returns:
        True if the token was refreshed
    """
    console.print("Attempting to refresh ChatGPT token...")

    try:
        credential = loop.run_until_complete(service.refresh_tokens())
    except NotAuthenticatedError:
        console.print("[red]No refresh token available - please login first[/red]")
        return False
    except RefreshFailedError as e:
        console.print(f"[red]{e}[/red]")
        console.print("This usually happens when the refresh token has expired.")
        return False
    except httpx.RequestError as e:
        logger.debug(f"Token refresh network error: {e}")
        console.print("[red]Network error during token refresh. Check connection and retry[/red]")
        return False

    console.print("[green]ChatGPT token refreshed successfully![/green]")
    console.print(f"Token valid for: {format_time_remaining(credential.expires_at)}")
    return True


def print_token(service: CodexOAuthService, loop, console) -> bool:
    """
    Print a valid access token (refreshing it first if needed)

    The token goes to stdout unstyled so it can be captured by scripts.

    Returns:
        True if a token was printed
    """
    try:
        token = loop.run_until_complete(service.get_valid_access_token())
    except NotAuthenticatedError as e:
        err_console.print(f"[red]{e}[/red]")
        return False
    except RefreshFailedError as e:
        err_console.print(f"[red]{e}[/red]")
        return False
    except httpx.RequestError as e:
        err_console.print(f"[red]Network error during token refresh: {e}[/red]")
        return False

    print(token)
    return True


def logout(service: CodexOAuthService, loop, console) -> bool:
    """
    Clear stored ChatGPT credentials

    Args:
        service: CodexOAuthService instance
        loop: Event loop for async operations
        console: Rich console for output

    Returns:
        True if a credential was cleared
    """
    was_authenticated = service.get_auth_state().is_authenticated
    loop.run_until_complete(service.logout())

    if was_authenticated:
        console.print("[green]Successfully logged out from ChatGPT Codex.[/green]")
        console.print("[dim]Your OAuth tokens have been cleared.[/dim]")
    else:
        console.print("[dim]You were not logged in to ChatGPT Codex.[/dim]")
    return was_authenticated
