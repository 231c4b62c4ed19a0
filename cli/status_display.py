"""Status display functionality for CLI"""

from datetime import datetime, timezone
from typing import Optional

from rich.table import Table

from codex_oauth import AuthState


def format_time_remaining(expires_at: datetime, now: Optional[datetime] = None) -> str:
    """Format time until expiry as '1d 2h', '3h 4m' or '5m'"""
    now = now or datetime.now(timezone.utc)
    seconds = (expires_at - now).total_seconds()
    if seconds < 0:
        return "expired"

    minutes = int(seconds // 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def get_auth_status(state: AuthState, refresh_margin: float = 0) -> tuple[str, str]:
    """
    Get authentication status and expiry info

    Args:
        state: Current authentication state
        refresh_margin: Seconds before expiry at which the token counts as stale

    Returns:
        Tuple of (status, detail_message)
    """
    if not state.is_authenticated or state.credentials is None:
        return "NO AUTH", "Not logged in"

    if state.requires_reauthentication:
        return "REAUTH REQUIRED", state.error or "Please login again"

    credentials = state.credentials
    if credentials.is_expired(refresh_margin):
        return "EXPIRED", "Token expired, will refresh on next use"

    return "VALID", f"Expires in {format_time_remaining(credentials.expires_at)}"


def show_auth_status(state: AuthState, console, token_file: Optional[str] = None):
    """
    Display detailed authentication status

    Args:
        state: Current authentication state
        console: Rich console for output
        token_file: Credential file location to show
    """
    status, detail = get_auth_status(state)

    table = Table(title="ChatGPT Codex Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    style = {"VALID": "green", "EXPIRED": "yellow"}.get(status, "red")
    table.add_row("Status", f"[{style}]{status}[/{style}] ({detail})")

    credentials = state.credentials
    if credentials is not None:
        table.add_row("Account ID", credentials.account_id)
        table.add_row("Expires At", credentials.expires_at.astimezone().strftime("%Y-%m-%d %H:%M:%S"))
        table.add_row("Time Until Expiry", format_time_remaining(credentials.expires_at))
        if credentials.last_refresh:
            table.add_row("Last Refresh", credentials.last_refresh.astimezone().strftime("%Y-%m-%d %H:%M:%S"))

    if state.error and not state.requires_reauthentication:
        table.add_row("Last Error", f"[yellow]{state.error}[/yellow]")

    if token_file:
        table.add_row("Token File", str(token_file))

    console.print(table)
